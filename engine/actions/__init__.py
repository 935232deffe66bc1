"""
Action packages for guardrail-checked mitigation directives and their audit ledger.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.actions.ledger import ActionLedger, ActionRecord, idempotency_key, incident_key
from engine.actions.controller import ActionController, ActionResult, RECOVERY_REASON, TRIGGER_REASON

__all__ = [
    "ActionLedger",
    "ActionRecord",
    "idempotency_key",
    "incident_key",
    "ActionController",
    "ActionResult",
    "RECOVERY_REASON",
    "TRIGGER_REASON",
]
