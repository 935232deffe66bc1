"""
Window packages for retaining normalized samples and counting them over trailing windows.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.window.buffer import SampleBuffer
from engine.window.aggregator import WindowAggregate, WindowAggregator

__all__ = ["SampleBuffer", "WindowAggregate", "WindowAggregator"]
