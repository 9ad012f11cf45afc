from ngsage.facts.models import FactKind
from ngsage.facts.state import split_union

STATE = """
export interface UserState {
  users: User[];
  userIds: number[];
  selectedUser: User | null;
  byId: { [id: string]: User };
  meta: { page: { size: number } };
}
"""

REDUCER = """
export const userReducer = createReducer(
  initialState,
  on(addUser, (state, { user }) => {
    state.users.push(user);
    return state;
  }),
  on(clear, state => ({ ...state, users: [] }))
);
"""

COMPONENT = """
@Component({ selector: 'app-edit', template: '' })
export class EditComponent {
  @Input() user: User;
  count = 0;

  rename(name: string) {
    this.user.name = name;
    name = name.trim();
  }

  start() {
    setInterval(() => this.count++, 1000);
  }
}
"""


def test_split_union():
    assert split_union("User | null") == ["User"]
    assert split_union("Map<string, A | B> | undefined") == ["Map<string, A | B>"]


def test_state_shape_depth(extract_facts):
    [shape] = extract_facts(STATE, FactKind.STATE_SHAPE, path="user.state.ts")
    assert shape.payload["state"] == "UserState"
    assert shape.payload["depth"] == 3


def test_state_fields(extract_facts):
    fields = {f.member: f.payload for f in extract_facts(STATE, FactKind.STATE_FIELD, path="user.state.ts")}
    assert fields["users"]["is_array"] is True
    assert fields["users"]["element_type"] == "User"
    assert fields["userIds"]["derived_from"] == "users"
    assert fields["selectedUser"]["type_name"] == "User"
    assert fields["byId"]["is_index_map"] is True


def test_state_references_skip_index_signatures(extract_facts):
    references = extract_facts(STATE, FactKind.STATE_REFERENCE, path="user.state.ts")
    assert sorted(r.member for r in references) == ["selectedUser", "users"]


def test_reducer_state_mutation(extract_facts):
    [mutation] = extract_facts(REDUCER, FactKind.PROPERTY_MUTATION, path="user.reducer.ts")
    assert mutation.payload["root_kind"] == "reducer-state"
    assert mutation.payload["operation"] == "push"
    assert mutation.payload["path"] == "users"


def test_component_mutations(extract_facts):
    mutations = extract_facts(COMPONENT, FactKind.PROPERTY_MUTATION)
    summary = [(m.member, m.payload["root_kind"], m.payload["root"], m.payload["operation"], m.payload["in_timer"])
               for m in mutations]
    assert summary == [
        ("rename", "input", "user", "assign", False),
        ("start", "field", "count", "update", True),
    ]


SELECTORS = """
import { createSelector } from '@ngrx/store';

export const selectUserState = (state: AppState) => state.users;
export const selectActiveUsers = (state: AppState) => state.users.list.filter(u => u.active);
export const selectUsers = createSelector(selectUserState, (state) => state);
export const selectView = createSelector(selectUserState, selectActiveUsers, (users, active) => ({ users, active }));
export const selectTotals = createSelector(selectActiveUsers, (users) => users.filter(u => u.paid).map(u => u.total).reduce((a, b) => a + b, 0));
export const selectCount = createSelector(selectActiveUsers, (users) => users.length);
"""


def test_selector_memoization(extract_facts):
    selectors = {f.payload["selector"]: f.payload for f in extract_facts(SELECTORS, FactKind.SELECTOR_DECLARED, path="user.selectors.ts")}
    assert selectors["selectActiveUsers"]["memoized"] is False
    assert selectors["selectActiveUsers"]["computes"] is True
    # property access alone is not a computation
    assert selectors["selectUserState"]["computes"] is False
    assert selectors["selectCount"]["memoized"] is True


def test_selector_projection_shape(extract_facts):
    selectors = {f.payload["selector"]: f.payload for f in extract_facts(SELECTORS, FactKind.SELECTOR_DECLARED, path="user.selectors.ts")}
    assert selectors["selectUsers"]["projection"] == "identity"
    assert selectors["selectView"]["projection"] == "passthrough"
    assert selectors["selectView"]["inputs"] == 2
    assert selectors["selectCount"]["projection"] == "derived"
    assert selectors["selectTotals"]["chained_operations"] == 3
    assert selectors["selectCount"]["chained_operations"] == 0
