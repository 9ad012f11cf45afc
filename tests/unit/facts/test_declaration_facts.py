from ngsage.facts.models import FactKind

MODULE = """
@Component({
  selector: 'app-shell',
  template: '',
  changeDetection: ChangeDetectionStrategy.OnPush,
  providers: [
    AuthService,
    { provide: Logger, useClass: ConsoleLogger },
    { provide: API_URL, useValue: '/api' },
  ],
})
export class ShellComponent {
  constructor(private cdr: ChangeDetectorRef) {}

  refresh() {
    this.cdr.markForCheck();
  }
}

export interface User {
  id: number;
  name: string;
}
"""


def test_providers(extract_facts):
    providers = [f.payload["provider"] for f in extract_facts(MODULE, FactKind.PROVIDER_REGISTERED)]
    assert providers == ["AuthService", "ConsoleLogger", "API_URL"]


def test_members(extract_facts):
    members = {f.member: f.payload for f in extract_facts(MODULE, FactKind.MEMBER_DECLARED)}
    assert members["cdr"]["member_kind"] == "parameter-property"
    assert members["cdr"]["accessibility"] == "private"
    assert members["refresh"]["member_kind"] == "method"


def test_entities(extract_facts):
    [entity] = extract_facts(MODULE, FactKind.ENTITY_DECLARED)
    assert entity.payload["name"] == "User"


def test_detection_strategy(extract_facts):
    [strategy] = extract_facts(MODULE, FactKind.DETECTION_STRATEGY)
    assert strategy.payload["strategy"] == "OnPush"

    default = MODULE.replace("  changeDetection: ChangeDetectionStrategy.OnPush,\n", "")
    [strategy] = extract_facts(default, FactKind.DETECTION_STRATEGY)
    assert strategy.payload["strategy"] is None


def test_manual_change_detection(extract_facts):
    [call] = extract_facts(MODULE, FactKind.MANUAL_CHANGE_DETECTION)
    assert call.member == "refresh"
    assert call.payload["call"] == "markForCheck"


def test_any_and_non_null(extract_facts):
    source = """
export class Holder {
  data: any;
  rows: any[];
  map: Record<string, any>;

  read(el?: HTMLElement) {
    const value = this.data as any;
    return el!.focus();
  }
}
"""
    contexts = sorted(f.payload["context"] for f in extract_facts(source, FactKind.ANY_TYPE, path="holder.ts"))
    assert contexts == ["annotation", "array", "cast"]
    [assertion] = extract_facts(source, FactKind.NON_NULL_ASSERTION, path="holder.ts")
    assert assertion.member == "read"
    assert assertion.payload["expression"] == "el!"


def test_declaration_found_carries_kind(extract_facts):
    found = {f.payload["name"]: f.payload for f in extract_facts(MODULE, FactKind.DECLARATION_FOUND)}
    assert found["ShellComponent"]["kind"] == "component"
    assert found["ShellComponent"]["decorator"] == "Component"
    assert found["User"]["kind"] == "interface"
