from ngsage.facts.models import FactKind

FEED = """
import { Component, OnDestroy } from '@angular/core';
import { Subject, Subscription } from 'rxjs';
import { map, takeUntil } from 'rxjs/operators';

@Component({ selector: 'app-feed', template: '' })
export class FeedComponent implements OnDestroy {
  private sub: Subscription;
  private destroy$ = new Subject<void>();

  constructor(private feed: FeedService) {
    this.sub = this.feed.items$.subscribe(items => {
      this.feed.details$.subscribe(d => console.log(d));
    });
    this.feed.stats$.pipe(map(s => s), takeUntil(this.destroy$)).subscribe();
  }

  ngOnDestroy() {
    this.sub.unsubscribe();
  }
}
"""


def test_subscriptions_record_storage_and_nesting(extract_facts):
    created = extract_facts(FEED, FactKind.SUBSCRIPTION_CREATED)
    assert len(created) == 3
    outer, inner, stats = created
    assert outer.payload["stored_in"] == "sub"
    assert outer.payload["depth"] == 0
    assert inner.payload["depth"] == 1
    assert inner.payload["parent"] == outer.payload["call"]
    assert stats.payload["operators"] == ["map", "takeUntil"]
    assert stats.payload["source"] == "this.feed.stats$"


def test_storage_and_disposal(extract_facts):
    [stored] = extract_facts(FEED, FactKind.SUBSCRIPTION_STORED)
    assert stored.payload["field"] == "sub"

    disposed = extract_facts(FEED, FactKind.SUBSCRIPTION_DISPOSED)
    by_via = {f.payload["via"]: f for f in disposed}
    assert set(by_via) == {"takeUntil", "unsubscribe"}
    assert by_via["unsubscribe"].payload["field"] == "sub"
    assert by_via["unsubscribe"].payload["lifecycle_bound"] is True
    assert by_via["unsubscribe"].member == "ngOnDestroy"


def test_teardown_hook(extract_facts):
    hooks = extract_facts(FEED, FactKind.TEARDOWN_HOOK)
    assert [(h.member, h.payload["via"]) for h in hooks] == [("ngOnDestroy", "ngOnDestroy")]


def test_destroy_ref_counts_as_teardown(extract_facts):
    source = """
@Component({ selector: 'app-x', template: '' })
export class XComponent {
  private destroyRef = inject(DestroyRef);
}
"""
    hooks = extract_facts(source, FactKind.TEARDOWN_HOOK)
    assert [h.payload["via"] for h in hooks] == ["DestroyRef"]


def test_assignments_inside_subscribe_callbacks(extract_facts):
    source = """
@Component({ selector: 'app-profile', template: '<h1>{{ user.name }}</h1>' })
export class ProfileComponent {
  user = null;
  loading = true;

  load() {
    this.loading = true;
    this.api.user$.subscribe({
      next: (user) => {
        this.user = user;
        this.loading = false;
      },
      error: () => {
        this.loading = false;
      },
    });
  }
}
"""
    assignments = extract_facts(source, FactKind.SUBSCRIPTION_ASSIGNMENT)
    assert sorted(a.payload["field"] for a in assignments) == ["loading", "user"]
    assert all(a.member == "load" for a in assignments)
    assert len({a.payload["call"] for a in assignments}) == 1
