"""
SLO packages for computing error-budget burn rates and budget consumption from windowed availability.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.slo.burn import BurnRateResult, burn_rate, burn_rates, error_budget
from engine.slo.budget import BudgetStatus, budget_status

__all__ = ["BurnRateResult", "burn_rate", "burn_rates", "error_budget", "BudgetStatus", "budget_status"]
