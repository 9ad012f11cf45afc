from ngsage.facts.models import FactKind

LIST = """
import { Component, signal } from '@angular/core';

@Component({
  selector: 'app-list',
  template: `
    <ul>
      <li *ngFor="let item of items">{{ format(item) }}</li>
    </ul>
    <p>{{ total() }} {{ when | date }}</p>
    <button (click)="refresh()">Refresh</button>
  `,
})
export class ListComponent {
  items = [];
  total = signal(0);
  when = new Date();

  format(item) {
    console.log(item);
    return item;
  }

  refresh() {}
}
"""

NESTED = """
@Component({
  selector: 'app-nested',
  template: `
    <div *ngIf="a">
      <div *ngIf="b">
        <span *ngIf="c">deep</span>
      </div>
    </div>
  `,
})
export class NestedComponent {}
"""


def test_iteration_without_key(extract_facts):
    [fact] = extract_facts(LIST, FactKind.ITERATION_WITHOUT_KEY)
    assert fact.payload["iterable"] == "items"
    assert fact.payload["directive"] == "ngFor"


def test_keyed_iteration_is_not_reported(extract_facts):
    source = LIST.replace("let item of items", "let item of items; trackBy: trackById")
    assert extract_facts(source, FactKind.ITERATION_WITHOUT_KEY) == []


def test_template_calls_classify_callees(extract_facts):
    calls = {f.payload["callee"]: f.payload for f in extract_facts(LIST, FactKind.TEMPLATE_CALL)}
    assert calls["format"]["callee_kind"] == "method"
    assert calls["format"]["side_effects"] is True
    assert calls["total"]["callee_kind"] == "signal"
    # event handlers are not render-time calls
    assert "refresh" not in calls


def test_pipes_used(extract_facts):
    [pipe] = extract_facts(LIST, FactKind.PIPE_USED)
    assert pipe.payload["pipe"] == "date"
    assert pipe.payload["source"] == "when"


def test_nested_conditionals_report_depth(extract_facts):
    depths = [f.payload["depth"] for f in extract_facts(NESTED, FactKind.NESTED_CONDITIONAL)]
    assert depths == [1, 2, 3]


def test_facts_point_into_the_template(extract_facts):
    [fact] = extract_facts(NESTED, FactKind.NESTED_CONDITIONAL)[2:]
    assert fact.range.line == 7


def test_pipe_declaration(extract_facts):
    source = """
@Pipe({ name: 'heavy', pure: false })
export class HeavyPipe {
  transform(value) { return value; }
}
"""
    [fact] = extract_facts(source, FactKind.PIPE_DECLARED, path="heavy.pipe.ts")
    assert fact.payload == {"name": "heavy", "pure": False}


def test_sanitized_values(extract_facts):
    source = """
@Component({ selector: 'app-html', template: '<div [innerHTML]="content"></div>' })
export class HtmlComponent {
  content: SafeHtml;
  other: string;

  constructor(private sanitizer: DomSanitizer) {
    this.other = this.sanitizer.bypassSecurityTrustHtml('<b>x</b>');
  }
}
"""
    sanitized = {f.payload["field"]: f.payload["via"] for f in extract_facts(source, FactKind.SANITIZED_VALUE)}
    assert sanitized == {"content": "SafeHtml", "other": "assignment"}


def test_loop_rendered_and_collection_size(extract_facts):
    source = """
@Component({
  selector: 'app-rows',
  template: `<div *ngFor="let row of rows.visible; trackBy: byId">{{ row }}</div>`,
})
export class RowsComponent {
  rows = Array.from({ length: 5000 }, (_, i) => i);
  slots = new Array(12);
  names = ['a', 'b'];
}
"""
    [loop] = extract_facts(source, FactKind.LOOP_RENDERED)
    assert loop.payload["iterable"] == "rows.visible"
    assert loop.payload["root"] == "rows"

    sizes = {f.payload["field"]: f.payload["size"] for f in extract_facts(source, FactKind.COLLECTION_SIZE)}
    assert sizes == {"rows": 5000, "slots": 12}


def test_built_in_loop_is_rendered_but_not_structural(extract_facts):
    source = """
@Component({
  selector: 'app-rows',
  template: `@for (row of rows; track row.id) { <p>{{ row.name }}</p> }`,
})
export class RowsComponent {
  rows = [];
}
"""
    assert extract_facts(source, FactKind.STRUCTURAL_DIRECTIVE) == []
    [loop] = extract_facts(source, FactKind.LOOP_RENDERED)
    assert loop.payload["directive"] == "@for"
