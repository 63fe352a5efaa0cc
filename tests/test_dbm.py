import os
import tempfile
import unittest

import h5py
import torch

from boltzmann.emf import BernoulliRBM, DeepBoltzmannMachine, load_params
from boltzmann.emf.checkpoint import list_roots


class TestDeepBoltzmannMachine(unittest.TestCase):
    def setUp(self) -> None:
        torch.manual_seed(10)
        self.layers = [
            ("vishid1", BernoulliRBM(8, 5, sigma=0.1)),
            ("hid1hid2", BernoulliRBM(5, 3, sigma=0.1)),
            ("hid2hid3", BernoulliRBM(3, 2, sigma=0.1)),
        ]
        self.dbm = DeepBoltzmannMachine(self.layers)
        self.X = torch.bernoulli(torch.full((8, 12), 0.5, dtype=torch.float64))
        return super().setUp()

    def test_construction(self):
        self.assertEqual(len(self.dbm), 3)
        self.assertEqual(self.dbm.input_dim, 8)
        self.assertEqual(self.dbm.output_dim, 2)
        self.assertIs(self.dbm[0], self.layers[0][1])
        self.assertIs(self.dbm["hid2hid3"], self.layers[2][1])

        with self.assertRaises(ValueError):
            DeepBoltzmannMachine([("a", BernoulliRBM(8, 5)), ("b", BernoulliRBM(4, 2))])
        with self.assertRaises(ValueError):
            DeepBoltzmannMachine([("a", BernoulliRBM(8, 5)), ("a", BernoulliRBM(5, 2))])
        with self.assertRaises(ValueError):
            DeepBoltzmannMachine([])

    def test_prob_hid_at_layer_cond_on_vis(self):
        first = self.dbm.prob_hid_at_layer_cond_on_vis(self.X, 0)
        self.assertTrue(torch.allclose(first, self.dbm[0].condprob_hid(self.X)))

        second = self.dbm.prob_hid_at_layer_cond_on_vis(self.X, 1)
        self.assertEqual(second.shape, (3, 12))
        self.assertTrue(torch.allclose(second, self.dbm[1].condprob_hid(first)))
        self.assertEqual(self.dbm.transform(self.X).shape, (2, 12))

        with self.assertRaises(ValueError):
            self.dbm.prob_hid_at_layer_cond_on_vis(self.X, 3)

    def test_prob_hid_cond_on_neighbors(self):
        below = self.X
        above = self.dbm.prob_hid_at_layer_cond_on_vis(self.X, 1)
        mhid1 = self.dbm.prob_hid_cond_on_neighbors(0, below, above)
        expected = torch.sigmoid(
            self.dbm[0].W @ below + self.dbm[1].W.t() @ above + self.dbm[0].hbias.unsqueeze(1)
        )
        self.assertTrue(torch.allclose(mhid1, expected))

        top = self.dbm.prob_hid_cond_on_neighbors(2, above)
        self.assertTrue(torch.allclose(top, self.dbm[2].condprob_hid(above)))
        with self.assertRaises(ValueError):
            self.dbm.prob_hid_cond_on_neighbors(2, above, torch.zeros(2, 12, dtype=torch.float64))

    def test_reconstruct(self):
        recon, errors = self.dbm.reconstruct(self.X, layer_index=1)
        self.assertEqual(recon.shape, (5, 12))
        self.assertEqual(errors.shape, (12,))
        with self.assertRaises(ValueError):
            self.dbm.reconstruct(self.X, layer_index=3)

    def test_pre_fit(self):
        before = [rbm.W.clone() for rbm in self.dbm.rbm_layers]
        validation = torch.bernoulli(torch.full((8, 4), 0.5, dtype=torch.float64))
        monitors = self.dbm.pre_fit(
            self.X,
            {
                "learnRate": 0.05,
                "batchSize": 4,
                "epochs": 2,
                "approxType": "tap2",
                "approxIters": 3,
                "persist": True,
                "showMonitor": False,
                "validationSet": validation,
            },
        )
        self.assertEqual(len(monitors), 3)
        for monitor in monitors:
            self.assertEqual(len(monitor), 2)
            self.assertIsNotNone(monitor.last.validation_score)
        for rbm, W0 in zip(self.dbm.rbm_layers, before):
            self.assertFalse(torch.equal(rbm.W, W0))

    def test_pre_fit_checkpoints_every_layer(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "pre_fit.h5")
            self.dbm.pre_fit(
                self.X,
                {
                    "learnRate": 0.05,
                    "batchSize": 4,
                    "epochs": 2,
                    "showMonitor": False,
                    "saveEvery": 1,
                    "saveFile": path,
                },
            )
            roots = list_roots(path)
            with h5py.File(path, "r") as h5file:
                shapes = {
                    name: tuple(h5file[f"Epoch0001__{name}__W"].shape)
                    for name in self.dbm.layer_names
                }
            restored = load_params(path, BernoulliRBM(8, 5), "Epoch0002__vishid1")

        self.assertEqual(
            roots,
            sorted(
                f"Epoch{epoch:04d}__{name}"
                for epoch in (1, 2)
                for name in self.dbm.layer_names
            ),
        )
        self.assertEqual(shapes, {"vishid1": (5, 8), "hid1hid2": (3, 5), "hid2hid3": (2, 3)})
        self.assertTrue(torch.equal(restored.W, self.dbm["vishid1"].W))

    def test_save_params(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "dbm.h5")
            self.dbm.save_params(path, "Epoch0001")
            self.dbm.append_params(path, "Epoch0002")
            roots = list_roots(path)
        self.assertEqual(len(roots), 6)
        self.assertIn("Epoch0001__vishid1", roots)
        self.assertIn("Epoch0002__hid2hid3", roots)


if __name__ == "__main__":
    unittest.main()
