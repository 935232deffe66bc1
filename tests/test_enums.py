"""
Test cases for enums used by the guard, including Severity ordering, action outcomes and lifecycle states.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.enums import ActionOutcome, GuardLifecycle, SampleKind, Severity


def test_severity_weight_and_coverage():
    assert Severity.low.weight() < Severity.medium.weight() < Severity.high.weight()
    assert Severity.high.covers(Severity.low)
    assert Severity.medium.covers(Severity.medium)
    assert not Severity.low.covers(Severity.medium)


def test_only_applied_and_reverted_execute():
    executed = {o for o in ActionOutcome if o.executed}
    assert executed == {ActionOutcome.applied, ActionOutcome.reverted}


def test_lifecycle_and_sample_kinds():
    assert [s.value for s in GuardLifecycle] == ["idle", "triggered", "monitoring", "recovering"]
    assert SampleKind("feed") is SampleKind.feed
