# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for :mod:`weft.config`."""

from __future__ import annotations

import pytest

from weft.config import SchedulerConfig
from weft.scheduler import Scheduler


def test_defaults() -> None:
    config = SchedulerConfig()

    assert config.load_window == 1.0
    assert config.worker_pool_size is None
    assert config.warn_unhandled_failures


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"load_window": 0}, "load_window"),
        ({"load_window": -1.0}, "load_window"),
        ({"worker_pool_size": 0}, "worker_pool_size"),
    ],
)
def test_invalid_values_are_rejected(kwargs: dict[str, object], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        _ = SchedulerConfig(**kwargs)  # type: ignore[arg-type]


class TestFromEnv:
    def test_empty_environment_uses_defaults(self) -> None:
        assert SchedulerConfig.from_env({}) == SchedulerConfig()

    def test_reads_all_variables(self) -> None:
        config = SchedulerConfig.from_env(
            {
                "WEFT_LOAD_WINDOW": "2.5",
                "WEFT_WORKER_POOL_SIZE": "3",
                "WEFT_WARN_UNHANDLED": "off",
            }
        )

        assert config == SchedulerConfig(
            load_window=2.5, worker_pool_size=3, warn_unhandled_failures=False
        )

    @pytest.mark.parametrize("value", ["1", "TRUE", " yes ", "on"])
    def test_truthy_values(self, value: str) -> None:
        config = SchedulerConfig.from_env({"WEFT_WARN_UNHANDLED": value})

        assert config.warn_unhandled_failures

    @pytest.mark.parametrize(
        ("env", "message"),
        [
            ({"WEFT_LOAD_WINDOW": "soon"}, "WEFT_LOAD_WINDOW must be a number"),
            ({"WEFT_WORKER_POOL_SIZE": "many"}, "WEFT_WORKER_POOL_SIZE must be an integer"),
            ({"WEFT_WARN_UNHANDLED": "maybe"}, "WEFT_WARN_UNHANDLED must be a boolean"),
            ({"WEFT_WORKER_POOL_SIZE": "0"}, "worker_pool_size must be at least 1"),
        ],
    )
    def test_invalid_values(self, env: dict[str, str], message: str) -> None:
        with pytest.raises(ValueError, match=message):
            _ = SchedulerConfig.from_env(env)

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WEFT_LOAD_WINDOW", "0.5")

        assert SchedulerConfig.from_env().load_window == 0.5


def test_scheduler_uses_config() -> None:
    config = SchedulerConfig(load_window=0.25)

    with Scheduler(config=config) as scheduler:
        assert scheduler.config is config
