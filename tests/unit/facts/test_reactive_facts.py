from ngsage.facts.models import FactKind
from ngsage.facts.reactive import signal_factory

COUNTER = """
import { Component, computed, effect, signal, untracked } from '@angular/core';

@Component({ selector: 'app-counter', template: '<p>{{ count() }}</p>' })
export class CounterComponent {
  count = signal(0);
  doubled = computed(() => this.count() * 2);
  limit = 10;

  constructor() {
    effect(() => {
      if (this.count() < untracked(() => this.doubled())) {
        this.count.set(this.count() + 1);
      }
    });
  }

  reset() {
    this.count.update(() => 0);
  }
}
"""


def test_signal_factory():
    assert signal_factory("signal<number>(0)") == "signal"
    assert signal_factory("input.required<string>()") == "input.required"
    assert signal_factory("new Subject()") is None
    assert signal_factory(None) is None


def test_signal_declarations(extract_facts):
    declared = {f.member: f.payload for f in extract_facts(COUNTER, FactKind.SIGNAL_DECLARED)}
    assert set(declared) == {"count", "doubled"}
    assert declared["count"]["writable"] is True
    assert declared["doubled"]["factory"] == "computed"
    assert declared["doubled"]["writable"] is False
    assert [f.member for f in extract_facts(COUNTER, FactKind.COMPUTED_DECLARED)] == ["doubled"]


def test_effect_scope_carries_reads_and_writes(extract_facts):
    [effect] = extract_facts(COUNTER, FactKind.EFFECT_DECLARED)
    scope = effect.payload["scope"]
    assert effect.member == "constructor"

    writes = extract_facts(COUNTER, FactKind.SIGNAL_WRITTEN)
    in_effect = [w for w in writes if w.payload["scope"] == scope]
    assert [(w.payload["signal"], w.payload["method"]) for w in in_effect] == [("count", "set")]
    outside = [w for w in writes if w.payload["scope"] is None]
    assert [w.member for w in outside] == ["reset"]


def test_untracked_reads_are_flagged(extract_facts):
    reads = extract_facts(COUNTER, FactKind.SIGNAL_READ)
    untracked = [r for r in reads if r.payload["untracked"]]
    assert [r.payload["signal"] for r in untracked] == ["doubled"]
    assert any(r.member == "doubled" and r.payload["scope"] is None for r in reads)


def test_plain_properties_are_not_signals(extract_facts):
    assert all(f.member != "limit" for f in extract_facts(COUNTER, FactKind.SIGNAL_DECLARED))


def test_effect_writes_derived_from_signals(extract_facts):
    source = """
@Component({ selector: 'app-cart', template: '' })
export class CartComponent {
  items = signal([]);
  total = signal(0);
  count = signal(0);
  updatedAt = signal('');

  constructor() {
    effect(() => {
      const items = this.items();
      const sum = items.reduce((a, i) => a + i.price, 0);
      this.total.set(sum);
      this.count.set(this.items().length);
      this.updatedAt.set(new Date().toISOString());
    });
  }
}
"""
    writes = {w.payload["signal"]: w.payload["derived"] for w in extract_facts(source, FactKind.SIGNAL_WRITTEN)}
    assert writes == {"total": True, "count": True, "updatedAt": False}


def test_writes_outside_effects_are_not_derived(extract_facts):
    [write] = [w for w in extract_facts(COUNTER, FactKind.SIGNAL_WRITTEN) if w.member == "reset"]
    assert write.payload["derived"] is False
