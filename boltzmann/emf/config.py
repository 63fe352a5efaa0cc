# -*- coding: utf-8 -*-
# Copyright (C) 2025-present Beijing QBoson Quantum Technology Co., Ltd.
#
# SPDX-License-Identifier: Apache-2.0
"""Training configuration: approximation modes, weight decay kinds and the
per-run option record merged from user options over the defaults."""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


class ApproxType(Enum):
    """Negative-phase approximation used during training."""

    CD = "CD"
    NAIVE = "naive"
    TAP2 = "tap2"
    TAP3 = "tap3"

    @classmethod
    def parse(cls, value) -> "ApproxType":
        """Parses an approximation name.

        ``"sample"``, ``"CD"`` and ``"cd"`` all select Gibbs sampling.

        Raises:
            ValueError: If the name is not recognised.
        """
        if isinstance(value, cls):
            return value
        name = str(value).lower()
        if name in ("sample", "cd"):
            return cls.CD
        for member in cls:
            if member.value == name:
                return member
        raise ValueError(
            f"Unknown approximation {value!r}; expected one of "
            "'sample', 'CD', 'naive', 'tap2', 'tap3'"
        )

    @property
    def is_mean_field(self) -> bool:
        """True for the deterministic (naive and TAP) approximations."""
        return self is not ApproxType.CD

    @property
    def is_tap(self) -> bool:
        """True when the second-order correction (and ``W2``) is needed."""
        return self in (ApproxType.TAP2, ApproxType.TAP3)


class WeightDecay(Enum):
    """Weight regularization applied to the gradient buffer."""

    NONE = "none"
    L1 = "l1"
    L2 = "l2"

    @classmethod
    def parse(cls, value) -> "WeightDecay":
        if isinstance(value, cls):
            return value
        name = str(value).lower()
        for member in cls:
            if member.value == name:
                return member
        raise ValueError(
            f"Unknown weight decay {value!r}; expected 'none', 'l1' or 'l2'"
        )


# user-facing option name -> TrainingConfig field
OPTION_KEYS = {
    "learnRate": "learn_rate",
    "batchSize": "batch_size",
    "epochs": "epochs",
    "approxType": "approx_type",
    "approxIters": "approx_iters",
    "persist": "persist",
    "persistStart": "persist_start",
    "weightDecayType": "weight_decay_type",
    "weightDecayMagnitude": "weight_decay_magnitude",
    "validationSet": "validation_set",
    "monitorEvery": "monitor_every",
    "showMonitor": "show_monitor",
    "saveEvery": "save_every",
    "saveFile": "save_file",
    "dropoutRate": "dropout_rate",
}

REQUIRED_OPTIONS = ("learnRate", "batchSize")


def default_train_parameters() -> dict:
    """Returns a fresh dictionary with the default value of every option."""
    return {
        "learnRate": None,
        "batchSize": None,
        "epochs": 10,
        "approxType": "sample",
        "approxIters": 1,
        "persist": False,
        "persistStart": 1,
        "weightDecayType": "none",
        "weightDecayMagnitude": 0.0,
        "validationSet": None,
        "monitorEvery": 1,
        "showMonitor": True,
        "saveEvery": math.inf,
        "saveFile": "",
        "dropoutRate": math.nan,
    }


def _is_empty(data) -> bool:
    if data is None:
        return True
    numel = getattr(data, "numel", None)
    if callable(numel):
        return numel() == 0
    size = getattr(data, "size", None)
    if isinstance(size, int):
        return size == 0
    return len(data) == 0


@dataclass(frozen=True)
class TrainingConfig:
    """Options of a single training run.

    Build it with :meth:`from_options`, which merges user options over
    :func:`default_train_parameters` and validates the result.
    """

    learn_rate: float
    batch_size: int
    epochs: int = 10
    approx_type: ApproxType = ApproxType.CD
    approx_iters: int = 1
    persist: bool = False
    persist_start: int = 1
    weight_decay_type: WeightDecay = WeightDecay.NONE
    weight_decay_magnitude: float = 0.0
    validation_set: Optional[Any] = None
    monitor_every: int = 1
    show_monitor: bool = True
    save_every: float = math.inf
    save_file: str = ""
    dropout_rate: float = math.nan

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "approx_type", ApproxType.parse(self.approx_type))
        object.__setattr__(
            self, "weight_decay_type", WeightDecay.parse(self.weight_decay_type)
        )
        if _is_empty(self.validation_set):
            object.__setattr__(self, "validation_set", None)
        if self.save_file is None:
            object.__setattr__(self, "save_file", "")

        if not self.learn_rate > 0:
            raise ValueError(f"learnRate must be positive, got {self.learn_rate}")
        for name, value in (
            ("batchSize", self.batch_size),
            ("epochs", self.epochs),
            ("approxIters", self.approx_iters),
            ("persistStart", self.persist_start),
            ("monitorEvery", self.monitor_every),
        ):
            if int(value) != value or value < 1:
                raise ValueError(f"{name} must be an integer >= 1, got {value}")
        if not self.save_every > 0:
            raise ValueError(f"saveEvery must be positive, got {self.save_every}")

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> "TrainingConfig":
        """Merges ``options`` over the defaults and builds a config.

        Args:
            options: Mapping keyed by the option names of :data:`OPTION_KEYS`.

        Raises:
            ValueError: On unknown keys, a missing ``learnRate``/``batchSize``,
                or an invalid value.
        """
        options = dict(options or {})
        unknown = sorted(set(options) - set(OPTION_KEYS))
        if unknown:
            raise ValueError(f"Unknown training option(s): {', '.join(unknown)}")

        merged = default_train_parameters()
        merged.update(options)
        for key in REQUIRED_OPTIONS:
            if merged[key] is None:
                raise ValueError(f"Required training option {key!r} is not set")

        return cls(**{OPTION_KEYS[key]: value for key, value in merged.items()})

    @property
    def checkpointing(self) -> bool:
        """True when parameters are written to ``save_file`` during training."""
        return bool(self.save_file) and math.isfinite(self.save_every)

    def should_save(self, epoch: int) -> bool:
        return self.checkpointing and epoch % int(self.save_every) == 0

    def should_monitor(self, epoch: int) -> bool:
        return epoch % self.monitor_every == 0

    def use_persistence(self, epoch: int) -> bool:
        """Whether the persistent chain drives the negative phase at ``epoch``."""
        return self.persist and epoch >= self.persist_start
