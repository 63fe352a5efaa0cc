import math
import unittest

import numpy as np
import torch

from boltzmann.emf import BernoulliRBM


class TestBernoulliRBM(unittest.TestCase):
    def setUp(self) -> None:
        torch.manual_seed(0)
        self.num_visible = 4
        self.num_hidden = 2
        self.rbm = BernoulliRBM(self.num_visible, self.num_hidden)
        self.vis = torch.bernoulli(torch.full((4, 5), 0.5, dtype=torch.float64))
        return super().setUp()

    def test_buffers(self):
        self.assertEqual(self.rbm.W.shape, (self.num_hidden, self.num_visible))
        self.assertEqual(self.rbm.vbias.shape, (self.num_visible,))
        self.assertEqual(self.rbm.hbias.shape, (self.num_hidden,))
        self.assertEqual(self.rbm.dW.shape, self.rbm.W.shape)
        self.assertTrue(torch.all(self.rbm.dW_prev == 0))
        self.assertIsNone(self.rbm.W2)
        self.assertIsNone(self.rbm.W3)
        self.assertIsNone(self.rbm.persistent_chain_vis)
        self.assertEqual(self.rbm.W.dtype, torch.float64)
        self.assertIn("W", self.rbm.state_dict())

    def test_vbias_from_train_data(self):
        data = np.array(
            [[1, 1, 1, 1], [0, 0, 0, 0], [1, 0, 1, 0]], dtype=np.float64
        )
        rbm = BernoulliRBM(3, 2, train_data=data)
        expected = [math.log(0.999 / 0.001), math.log(0.001 / 0.999), 0.0]
        for got, want in zip(rbm.vbias.tolist(), expected):
            self.assertAlmostEqual(got, want, places=6)

        with self.assertRaises(ValueError):
            BernoulliRBM(4, 2, train_data=data)

    def test_vis_shape(self):
        rbm = BernoulliRBM(6, 2, vis_shape=(2, 3))
        self.assertEqual(rbm.vis_shape, (2, 3))
        with self.assertRaises(ValueError):
            BernoulliRBM(6, 2, vis_shape=(2, 2))

    def test_condprob(self):
        self.rbm.W.copy_(torch.tensor([[1.0, -1.0, 0.0, 2.0], [0.5, 0.0, 0.0, 0.0]]))
        self.rbm.hbias.copy_(torch.tensor([0.0, -1.0]))
        vis = torch.tensor([[1.0], [1.0], [0.0], [1.0]], dtype=torch.float64)

        hid = self.rbm.condprob_hid(vis)
        self.assertAlmostEqual(hid[0, 0].item(), 1.0 / (1.0 + math.exp(-2.0)))
        self.assertAlmostEqual(hid[1, 0].item(), 1.0 / (1.0 + math.exp(0.5)))

        vis_p = self.rbm.condprob_vis(torch.rand(self.num_hidden, 7, dtype=torch.float64))
        self.assertEqual(vis_p.shape, (self.num_visible, 7))
        self.assertTrue(torch.all((vis_p > 0) & (vis_p < 1)))

    def test_sample_and_mcmc(self):
        samples, means = self.rbm.sample_hiddens(self.vis)
        self.assertEqual(samples.shape, (self.num_hidden, 5))
        self.assertTrue(torch.all((samples == 0) | (samples == 1)))
        self.assertTrue(torch.equal(means, self.rbm.condprob_hid(self.vis)))

        hid_init, _ = self.rbm.sample_hiddens(self.vis)
        v_s, v_m, h_s, h_m = self.rbm.mcmc(hid_init, iterations=3, start_mode="hidden")
        self.assertEqual(v_s.shape, (self.num_visible, 5))
        self.assertEqual(h_m.shape, (self.num_hidden, 5))
        self.assertTrue(torch.all((v_s == 0) | (v_s == 1)))
        self.assertTrue(torch.allclose(h_m, self.rbm.condprob_hid(v_s)))

        with self.assertRaises(ValueError):
            self.rbm.mcmc(self.vis, start_mode="sideways")

    def test_weight_powers(self):
        self.assertTrue(torch.equal(self.rbm.squared_weights(), self.rbm.W * self.rbm.W))
        self.assertTrue(
            torch.equal(self.rbm.cubed_weights(), self.rbm.W * self.rbm.W * self.rbm.W)
        )

        self.rbm.refresh_derived_weights("tap2")
        self.assertIsNotNone(self.rbm.W2)
        self.assertIsNone(self.rbm.W3)
        self.rbm.refresh_derived_weights("CD")
        self.assertIsNone(self.rbm.W2)

    def test_equilibrate_without_couplings(self):
        self.rbm.W.zero_()
        self.rbm.hbias.copy_(torch.tensor([0.3, -0.2]))
        self.rbm.vbias.copy_(torch.tensor([1.0, 0.0, -1.0, 2.0]))
        hid = torch.full((self.num_hidden, 5), 0.5, dtype=torch.float64)

        for approx in ("naive", "tap2", "tap3"):
            with self.subTest(approx=approx):
                m_vis, m_hid = self.rbm.equilibrate(
                    self.vis, hid, iterations=1, approx=approx, damp=0.0
                )
                expected_hid = torch.sigmoid(self.rbm.hbias).unsqueeze(1).expand(-1, 5)
                expected_vis = torch.sigmoid(self.rbm.vbias).unsqueeze(1).expand(-1, 5)
                self.assertTrue(torch.allclose(m_hid, expected_hid))
                self.assertTrue(torch.allclose(m_vis, expected_vis))

    def test_equilibrate_is_deterministic_and_leaves_inputs(self):
        hid = self.rbm.condprob_hid(self.vis)
        vis_copy, hid_copy = self.vis.clone(), hid.clone()
        first = self.rbm.equilibrate(self.vis, hid, iterations=3, approx="tap3")
        second = self.rbm.equilibrate(self.vis, hid, iterations=3, approx="tap3")
        self.assertTrue(torch.equal(first[0], second[0]))
        self.assertTrue(torch.equal(first[1], second[1]))
        self.assertTrue(torch.equal(self.vis, vis_copy))
        self.assertTrue(torch.equal(hid, hid_copy))

        with self.assertRaises(ValueError):
            self.rbm.equilibrate(self.vis, hid, approx="CD")
        with self.assertRaises(ValueError):
            self.rbm.equilibrate(self.vis, hid[:, :3], approx="naive")

    def test_free_energy(self):
        self.rbm.W.zero_()
        energy = self.rbm.free_energy(self.vis)
        self.assertEqual(energy.shape, (5,))
        for value in energy.tolist():
            self.assertAlmostEqual(value, -self.num_hidden * math.log(2.0))

    def test_gibbs_free_energy_without_couplings(self):
        # with W = 0 and zero biases, -G at m = 1/2 is exactly log Z
        self.rbm.W.zero_()
        m_vis = torch.full((self.num_visible, 3), 0.5, dtype=torch.float64)
        m_hid = torch.full((self.num_hidden, 3), 0.5, dtype=torch.float64)
        log_z = (self.num_visible + self.num_hidden) * math.log(2.0)
        for approx in ("naive", "tap2", "tap3"):
            with self.subTest(approx=approx):
                gibbs = self.rbm.gibbs_free_energy(m_vis, m_hid, approx=approx)
                for value in gibbs.tolist():
                    self.assertAlmostEqual(value, -log_z)

    def test_scores(self):
        pseudo = self.rbm.score_samples(self.vis)
        self.assertEqual(pseudo.shape, (5,))
        self.assertTrue(torch.all(pseudo <= 0))

        tap = self.rbm.score_samples_tap(self.vis, approx="tap2", iterations=3)
        self.assertEqual(tap.shape, (5,))
        self.assertTrue(torch.all(torch.isfinite(tap)))

        self.assertGreaterEqual(self.rbm.recon_error(self.vis), 0.0)

    def test_check_shapes(self):
        with self.assertRaises(ValueError):
            self.rbm.check_shapes(vis=torch.zeros(3, 2, dtype=torch.float64))
        with self.assertRaises(ValueError):
            self.rbm.check_shapes(hid=torch.zeros(5, 2, dtype=torch.float64))
        with self.assertRaises(ValueError):
            self.rbm.check_shapes(vis=torch.zeros(4, dtype=torch.float64))


if __name__ == "__main__":
    unittest.main()
