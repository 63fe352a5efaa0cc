import unittest

import torch

from boltzmann.emf import BernoulliRBM, generate, get_negative_samples


class TestNegativeSamples(unittest.TestCase):
    def setUp(self) -> None:
        torch.manual_seed(4)
        self.rbm = BernoulliRBM(6, 3, sigma=0.3)
        self.vis = torch.bernoulli(torch.full((6, 8), 0.5, dtype=torch.float64))
        self.hid = self.rbm.condprob_hid(self.vis)
        return super().setUp()

    def test_gibbs_returns_visible_samples_and_hidden_means(self):
        h_init, _ = self.rbm.sample_hiddens(self.vis)
        v_neg, h_neg = get_negative_samples(self.rbm, self.vis, h_init, "CD", 2)
        self.assertEqual(v_neg.shape, (6, 8))
        self.assertEqual(h_neg.shape, (3, 8))
        self.assertTrue(torch.all((v_neg == 0) | (v_neg == 1)))
        self.assertTrue(torch.allclose(h_neg, self.rbm.condprob_hid(v_neg)))

    def test_mean_field_matches_equilibrate(self):
        for approx in ("naive", "tap2", "tap3"):
            with self.subTest(approx=approx):
                v_neg, h_neg = get_negative_samples(self.rbm, self.vis, self.hid, approx, 3)
                v_eq, h_eq = self.rbm.equilibrate(self.vis, self.hid, iterations=3, approx=approx)
                self.assertTrue(torch.equal(v_neg, v_eq))
                self.assertTrue(torch.equal(h_neg, h_eq))
                self.assertTrue(torch.all((v_neg > 0) & (v_neg < 1)))

    def test_hidden_shape_mismatch(self):
        with self.assertRaises(ValueError):
            get_negative_samples(self.rbm, self.vis, self.hid[:2], "CD", 1)
        with self.assertRaises(ValueError):
            get_negative_samples(self.rbm, self.vis, self.hid[:2], "tap2", 1)


class TestGenerate(unittest.TestCase):
    def test_generate_reshapes_samples(self):
        torch.manual_seed(5)
        rbm = BernoulliRBM(6, 3, vis_shape=(2, 3))
        vis_init = torch.bernoulli(torch.full((6, 4), 0.5, dtype=torch.float64))
        for approx in ("CD", "tap2"):
            with self.subTest(approx=approx):
                samples = generate(rbm, vis_init, approx=approx, iterations=2)
                self.assertEqual(samples.shape, (4, 2, 3))
                self.assertTrue(torch.all((samples == 0) | (samples == 1)))


if __name__ == "__main__":
    unittest.main()
