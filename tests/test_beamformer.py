import mne
import numpy as np
import pytest

from sourcescan import (LCMVConfig, Leadfield, PreconditionError, VolumeImage,
                        beamformer_lcmv, beamformer_lcmv_csd, beamformer_lcmv_epochs,
                        cross_spectral_density, reduce_epochs)
from sourcescan.solvers import regularise, retain_svd, robust_inverse, scan_locations

rng = np.random.default_rng(19)

# Parameters
sfreq = 2048
foi = 40
n_samples, n_trials, n_sensors = 8192, 6, 6
ch_names = ["Cz", "Fz", "Pz", "Oz", "T7", "T8"]

# Fake a leadfield on a 5 x 5 x 5 grid
grid = np.arange(-2, 3.0)
x_pos, y_pos, z_pos = [c.ravel() for c in np.meshgrid(grid, grid, grid, indexing="ij")]
H = rng.random((125, 3, n_sensors))

signal = rng.standard_normal((n_samples, n_trials, n_sensors))
noise = rng.standard_normal((n_samples, n_trials, n_sensors))


def test_default_scan():
    variance, noise_variance, nai = beamformer_lcmv(signal, noise, H, sfreq, foi)
    for result in (variance, noise_variance, nai):
        assert result.shape == (125,)
        assert np.all(np.isfinite(result))
        assert np.all(result >= 0)
    assert np.allclose(nai, variance / noise_variance)


@pytest.mark.parametrize("subspace, regularisation", [
    (0.0, 0.0), (0.0, 0.001), (0.9, 0.001), (0.99, 0.001), (1.0, 0.003)])
def test_configurations(subspace, regularisation):
    _, _, nai = beamformer_lcmv(signal, noise, H, sfreq, foi,
                                subspace=subspace, regularisation=regularisation)
    assert nai.shape == (125,)
    assert np.all(np.isfinite(nai))


def test_determinism():
    first = beamformer_lcmv(signal, noise, H, sfreq, foi)
    second = beamformer_lcmv(signal, noise, H, sfreq, foi)
    for a, b in zip(first, second):
        assert np.array_equal(a, b)


def test_parallel_scan_matches_serial():
    serial = beamformer_lcmv(signal, noise, H, sfreq, foi, n_jobs=1)
    parallel = beamformer_lcmv(signal, noise, H, sfreq, foi, n_jobs=2)
    for a, b in zip(serial, parallel):
        assert np.allclose(a, b)


def test_output_length_is_number_of_locations():
    H_small = rng.random((7, 2, n_sensors))
    results = beamformer_lcmv(signal[:, :3], noise[:, :3], H_small, sfreq, foi)
    assert all(len(result) == 7 for result in results)


@pytest.mark.parametrize("c", [3.7, -2.0, 0.01])
def test_nai_scale_invariance(c):
    C = cross_spectral_density(signal, foi - 0.5, foi + 0.5, sfreq)
    Q = cross_spectral_density(noise, foi - 0.5, foi + 0.5, sfreq)
    variance, noise_variance, nai = beamformer_lcmv_csd(C, Q, H)
    variance_c, noise_variance_c, nai_c = beamformer_lcmv_csd(C, Q, c * H)
    assert np.allclose(variance_c, variance / c**2, rtol=1e-6)
    assert np.allclose(noise_variance_c, noise_variance / c**2, rtol=1e-6)
    assert np.allclose(nai_c, nai, rtol=1e-6)


def test_regularisation_monotonicity():
    A = rng.standard_normal((6, 6))
    C = (A @ A.T).astype(complex)
    assert regularise(C, 0) is C
    smallest = [np.linalg.eigvalsh(np.real(regularise(C, r))).min()
                for r in (0, 0.001, 0.01, 0.1, 1)]
    assert np.all(np.diff(smallest) > 0)


def test_subspace_minimality():
    M = np.diag([4.0, 3.0, 2.0, 1.0])
    assert retain_svd(M, 0.3)[0].shape == (1, 4)
    assert retain_svd(M, 0.65)[0].shape == (2, 4)
    assert retain_svd(M, 0.71)[0].shape == (3, 4)
    assert retain_svd(M, 0.95)[0].shape == (4, 4)
    assert retain_svd(M, 1.0)[0].shape == (4, 4)

    basis, retained = retain_svd(M, 0.0)
    assert np.array_equal(basis, np.identity(4))
    assert retained == 1.0

    A = rng.standard_normal((8, 8))
    M = A @ A.T
    s = np.linalg.svd(M, compute_uv=False)
    power = np.cumsum(s) / s.sum()
    for fraction in (0.2, 0.5, 0.8, 0.95):
        basis, retained = retain_svd(M, fraction)
        k = basis.shape[0]
        assert power[k-1] >= fraction
        assert k == 1 or power[k-2] < fraction
        assert np.isclose(retained, power[k-1])
        assert np.allclose(basis @ basis.T, np.identity(k))


def test_callback_receives_every_stage():
    events = []
    config = LCMVConfig(callback=events.append)
    beamformer_lcmv(signal, noise, H, sfreq, foi, config=config)
    stages = [event["stage"] for event in events]
    assert stages[:3] == ["regularise", "subspace", "inverse"]
    assert stages[-1] == "done"
    assert stages.count("scan") == 125
    assert events[1]["rank"] <= n_sensors


def test_progress_does_not_change_results():
    plain = beamformer_lcmv(signal, noise, H, sfreq, foi)
    with_progress = beamformer_lcmv(signal, noise, H, sfreq, foi, show_progress=True)
    for a, b in zip(plain, with_progress):
        assert np.array_equal(a, b)


def test_too_few_samples():
    with pytest.raises(PreconditionError):
        beamformer_lcmv(signal[:n_sensors], noise[:n_sensors], H, sfreq, foi)


def test_forward_model_sensor_mismatch():
    with pytest.raises(PreconditionError):
        beamformer_lcmv(signal, noise, H[:, :, :5], sfreq, foi)


def test_noise_sensor_mismatch():
    with pytest.raises(PreconditionError):
        beamformer_lcmv(signal, noise[:, :, :5], H, sfreq, foi)


def test_non_finite_forward_model():
    H_nan = H.copy()
    H_nan[3, 1, 2] = np.inf
    with pytest.raises(PreconditionError):
        beamformer_lcmv(signal, noise, H_nan, sfreq, foi)


def test_identical_conditions():
    with pytest.raises(PreconditionError):
        beamformer_lcmv(signal, signal.copy(), H, sfreq, foi)


def test_unknown_option():
    with pytest.raises(PreconditionError):
        beamformer_lcmv(signal, noise, H, sfreq, foi, freq_pm=1.0)


def make_epochs(data, names=ch_names):
    info = mne.create_info(list(names), sfreq, ch_types="eeg")
    return mne.EpochsArray(data.transpose(1, 2, 0), info, verbose=0)


def test_epochs_scan():
    leadfield = Leadfield(H, x_pos, y_pos, z_pos, ch_names)
    image = beamformer_lcmv_epochs(make_epochs(signal), make_epochs(noise), leadfield, foi=foi)
    assert isinstance(image, VolumeImage)
    assert image.method == "LCMV"
    assert image.units == "NAI"
    assert image.coord_system == "Talairach"
    assert np.array_equal(image.weights, np.ones(125))
    assert np.array_equal(image.x, x_pos)
    assert image.info["freq_band"] == (foi - 0.5, foi + 0.5)

    _, _, nai = beamformer_lcmv(signal, noise, H, sfreq, foi)
    assert np.allclose(image.data, nai)


def test_epochs_scan_realigns_leadfield():
    order = [3, 0, 5, 1, 4, 2]
    leadfield = Leadfield(H[:, :, order], x_pos, y_pos, z_pos, [ch_names[i] for i in order])
    image = beamformer_lcmv_epochs(make_epochs(signal), make_epochs(noise), leadfield, foi=foi)
    _, _, nai = beamformer_lcmv(signal, noise, H, sfreq, foi)
    assert np.allclose(image.data, nai)


def test_epochs_scan_reduces_epochs():
    leadfield = Leadfield(H, x_pos, y_pos, z_pos, ch_names)
    image = beamformer_lcmv_epochs(make_epochs(signal), make_epochs(noise), leadfield,
                                   foi=foi, target_epoch_count=3)
    assert image.info["n_epochs"] == (3, 3)
    assert np.all(np.isfinite(image.data))

    # A target above the number of epochs keeps all of them
    image = beamformer_lcmv_epochs(make_epochs(signal), make_epochs(noise), leadfield,
                                   foi=foi, target_epoch_count=10)
    assert image.info["n_epochs"] == (n_trials, n_trials)


def test_epochs_scan_requires_epochs():
    leadfield = Leadfield(H, x_pos, y_pos, z_pos, ch_names)
    info = mne.create_info(ch_names, sfreq, ch_types="eeg")
    raw = mne.io.RawArray(signal[:, 0, :].T, info, verbose=0)
    with pytest.raises(PreconditionError):
        beamformer_lcmv_epochs(raw, make_epochs(noise), leadfield, foi=foi)


def test_epochs_scan_requires_foi():
    leadfield = Leadfield(H, x_pos, y_pos, z_pos, ch_names)
    with pytest.raises(PreconditionError):
        beamformer_lcmv_epochs(make_epochs(signal), make_epochs(noise), leadfield)


def test_epochs_scan_sensor_mismatch():
    names = ch_names[:5] + ["Iz"]
    leadfield = Leadfield(H, x_pos, y_pos, z_pos, names)
    with pytest.raises(PreconditionError):
        beamformer_lcmv_epochs(make_epochs(signal), make_epochs(noise), leadfield, foi=foi)


def test_negative_subspace_disables_projection():
    disabled = beamformer_lcmv(signal, noise, H, sfreq, foi, subspace=0.0)
    negative = beamformer_lcmv(signal, noise, H, sfreq, foi, subspace=-0.5)
    for a, b in zip(disabled, negative):
        assert np.array_equal(a, b)


def test_array_scan_reduces_epochs():
    reduced = beamformer_lcmv(signal, noise, H, sfreq, foi, target_epoch_count=2)
    manual = beamformer_lcmv(reduce_epochs(signal, 2), reduce_epochs(noise, 2), H, sfreq, foi)
    for a, b in zip(reduced, manual):
        assert np.array_equal(a, b)

    # A target at or above the number of trials keeps all of them
    kept = beamformer_lcmv(signal, noise, H, sfreq, foi, target_epoch_count=n_trials)
    full = beamformer_lcmv(signal, noise, H, sfreq, foi)
    for a, b in zip(kept, full):
        assert np.array_equal(a, b)


def test_scan_locations_leaves_inputs_writeable():
    C = cross_spectral_density(signal, foi - 0.5, foi + 0.5, sfreq)
    Q = cross_spectral_density(noise, foi - 0.5, foi + 0.5, sfreq)
    invC, invQ = robust_inverse(C), robust_inverse(Q)
    variance, _, _ = scan_locations(invC, invQ, H, np.identity(n_sensors), LCMVConfig())
    assert variance.shape == (125,)
    assert invC.flags.writeable
    assert invQ.flags.writeable


@pytest.mark.parametrize("target", ["C", "Q", "H"])
def test_csd_scan_rejects_non_finite(target):
    inputs = dict(
        C=cross_spectral_density(signal, foi - 0.5, foi + 0.5, sfreq),
        Q=cross_spectral_density(noise, foi - 0.5, foi + 0.5, sfreq),
        H=H.copy(),
    )
    inputs[target][0, 1] = np.nan
    with pytest.raises(PreconditionError):
        beamformer_lcmv_csd(inputs["C"], inputs["Q"], inputs["H"])
