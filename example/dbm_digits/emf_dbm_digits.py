"""
EMF training on the sklearn digits dataset.

Trains a single RBM with the TAP2 negative phase, then pre-trains a three layer
DBM greedily, and plots the monitored pseudo-likelihood and TAP likelihood.
"""

import logging
import os

import numpy as np
import matplotlib.pyplot as plt

from sklearn.datasets import load_digits
from sklearn.model_selection import train_test_split

import torch
from boltzmann.emf import (
    BernoulliRBM,
    DeepBoltzmannMachine,
    LoggingObserver,
    fit,
    generate,
)


class EMFDigitsRunner:
    """
    Args:
        n_hidden (int): Hidden units of the first layer.
        learn_rate (float): Learning rate before division by the batch size.
        batch_size (int): Mini-batch size.
        epochs (int): Number of epochs.
        approx (str): Negative phase, "CD", "naive", "tap2" or "tap3".
        result_dir (str): Where plots and checkpoints are written.
    """

    def __init__(
        self,
        n_hidden=100,
        *,
        learn_rate=0.005,
        batch_size=100,
        epochs=20,
        approx="tap2",
        result_dir="results",
        random_state=42,
    ):
        self.n_hidden = n_hidden
        self.learn_rate = learn_rate
        self.batch_size = batch_size
        self.epochs = epochs
        self.approx = approx
        self.result_dir = result_dir
        self.random_state = random_state
        os.makedirs(self.result_dir, exist_ok=True)

    def load_data(self):
        "Binarized digits, one sample per column"
        digits = load_digits()
        data = (digits.data / 16.0 > 0.3).astype(np.float64)
        X_train, X_valid = train_test_split(
            data, test_size=0.2, random_state=self.random_state
        )
        return X_train.T, X_valid.T

    def options(self, X_valid):
        return {
            "learnRate": self.learn_rate,
            "batchSize": self.batch_size,
            "epochs": self.epochs,
            "approxType": self.approx,
            "approxIters": 3,
            "persist": True,
            "persistStart": 5,
            "weightDecayType": "l2",
            "weightDecayMagnitude": 0.01,
            "validationSet": X_valid,
            "monitorEvery": 1,
            "saveEvery": 10,
            "saveFile": os.path.join(self.result_dir, f"rbm_{self.approx}.h5"),
        }

    def fit_rbm(self, X_train, X_valid):
        torch.manual_seed(self.random_state)
        rbm = BernoulliRBM(
            X_train.shape[0],
            self.n_hidden,
            vis_shape=(8, 8),
            momentum=0.5,
            train_data=X_train,
        )
        return fit(rbm, X_train, self.options(X_valid))

    def fit_dbm(self, X_train, X_valid):
        torch.manual_seed(self.random_state)
        layers = [
            ("vishid1", BernoulliRBM(X_train.shape[0], self.n_hidden, vis_shape=(8, 8),
                                     momentum=0.5, train_data=X_train)),
            ("hid1hid2", BernoulliRBM(self.n_hidden, 50, momentum=0.5)),
            ("hid2hid3", BernoulliRBM(50, 10, momentum=0.5)),
        ]
        dbm = DeepBoltzmannMachine(layers)
        options = dict(
            self.options(X_valid),
            saveFile=os.path.join(self.result_dir, f"dbm_{self.approx}.h5"),
        )
        monitors = dbm.pre_fit(X_train, options, observers=[LoggingObserver()])
        dbm.save_params(os.path.join(self.result_dir, "dbm.h5"), f"Epoch{self.epochs:04d}")
        return dbm, monitors

    def plot_monitor(self, monitor, title):
        epochs = [record.epoch for record in monitor]
        _, axes = plt.subplots(1, 2, figsize=(12, 4))
        axes[0].plot(epochs, [r.pseudo_likelihood for r in monitor], label="train")
        axes[0].plot(epochs, [r.validation_pseudo_likelihood for r in monitor], label="valid")
        axes[0].set_title("Pseudo-likelihood")
        axes[1].plot(epochs, [r.tap_likelihood for r in monitor], label="train")
        axes[1].plot(epochs, [r.validation_tap_likelihood for r in monitor], label="valid")
        axes[1].set_title("TAP likelihood")
        for ax in axes:
            ax.set_xlabel("Epoch")
            ax.legend()
        plt.suptitle(title)
        plt.tight_layout()
        plt.savefig(os.path.join(self.result_dir, f"{title}.pdf"), bbox_inches="tight")
        plt.close()

    def plot_samples(self, rbm, X_valid, n_images=20):
        samples = generate(rbm, X_valid[:, :n_images], approx=self.approx, iterations=10)
        plt.imshow(np.hstack(samples.cpu().numpy()), cmap="gray")
        plt.axis("off")
        plt.savefig(os.path.join(self.result_dir, "samples.pdf"), bbox_inches="tight")
        plt.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s")
    runner = EMFDigitsRunner()
    X_train, X_valid = runner.load_data()

    rbm, monitor = runner.fit_rbm(X_train, X_valid)
    runner.plot_monitor(monitor, f"rbm_{runner.approx}")
    runner.plot_samples(rbm, X_valid)

    dbm, monitors = runner.fit_dbm(X_train, X_valid)
    for name, layer_monitor in zip(dbm.layer_names, monitors):
        runner.plot_monitor(layer_monitor, f"dbm_{name}")
