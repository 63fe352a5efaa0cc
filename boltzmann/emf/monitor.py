# -*- coding: utf-8 -*-
# Copyright (C) 2025-present Beijing QBoson Quantum Technology Co., Ltd.
#
# SPDX-License-Identifier: Apache-2.0
"""Per-epoch training diagnostics"""
from dataclasses import dataclass, fields
from typing import List, Optional

from .config import ApproxType


@dataclass
class MonitorRecord:
    """Diagnostics of one monitored epoch.

    Likelihood-style scores are averages over samples. Validation fields are
    ``None`` when training runs without a validation set.
    """

    epoch: int
    learn_rate: float
    momentum: float
    batch_time_us: float
    pseudo_likelihood: float
    tap_likelihood: float
    recon_error: float
    validation_pseudo_likelihood: Optional[float] = None
    validation_tap_likelihood: Optional[float] = None

    @property
    def score(self) -> float:
        return self.pseudo_likelihood

    @property
    def validation_score(self) -> Optional[float]:
        return self.validation_pseudo_likelihood


class Monitor:
    """Append-only history of :class:`MonitorRecord`, one per monitored epoch.

    Args:
        n_epochs (int): Number of epochs the run is planned for.
        monitor_every (int): Epoch interval between records.
        use_validation (bool): Whether records carry validation scores.
    """

    def __init__(self, n_epochs: int, monitor_every: int = 1, use_validation: bool = False):
        self.n_epochs = n_epochs
        self.monitor_every = monitor_every
        self.use_validation = use_validation
        self.records: List[MonitorRecord] = []

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def __getitem__(self, index) -> MonitorRecord:
        return self.records[index]

    @property
    def last(self) -> Optional[MonitorRecord]:
        return self.records[-1] if self.records else None

    def update(
        self,
        model,
        X,
        epoch,
        batch_time_us=0.0,
        lr=0.0,
        momentum=0.0,
        validation=None,
        approx=ApproxType.CD,
        approx_iters=1,
    ) -> MonitorRecord:
        """Scores ``model`` on ``X`` (and ``validation``) and appends a record.

        TAP likelihoods use ``approx`` when it is a mean-field approximation and
        second-order TAP otherwise.
        """
        approx = ApproxType.parse(approx)
        emf = approx if approx.is_mean_field else ApproxType.TAP2

        record = MonitorRecord(
            epoch=epoch,
            learn_rate=lr,
            momentum=momentum,
            batch_time_us=batch_time_us,
            pseudo_likelihood=model.score_samples(X).mean().item(),
            tap_likelihood=model.score_samples_tap(X, approx=emf, iterations=approx_iters)
            .mean()
            .item(),
            recon_error=model.recon_error(X),
        )
        if self.use_validation and validation is not None:
            record.validation_pseudo_likelihood = model.score_samples(validation).mean().item()
            record.validation_tap_likelihood = (
                model.score_samples_tap(validation, approx=emf, iterations=approx_iters)
                .mean()
                .item()
            )
        self.records.append(record)
        return record

    def as_dict(self) -> dict:
        """Column-wise view of the history, keyed by record field."""
        return {
            f.name: [getattr(record, f.name) for record in self.records]
            for f in fields(MonitorRecord)
        }
