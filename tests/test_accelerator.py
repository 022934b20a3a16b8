from concurrent.futures import Future
import threading

import numpy as np
import pytest
from pytest import approx

from geoutm import accelerator, reference
from geoutm.accelerator import (
    Device, EmulatedDevice, FORWARD_OUT_WIDTH, forward_batch, forward_kernel,
    inverse_batch, inverse_kernel, pack_forward, pack_inverse
)
from geoutm.coordinates import LatLng, UTMCoordinate
from geoutm.exceptions import BackendUnavailableError
from geoutm.extended import FAST, FULL

from tests.functions import sample_coords


@pytest.fixture(autouse=True)
def default_device():
    accelerator.set_device_factory(EmulatedDevice)
    yield
    accelerator.set_device_factory(EmulatedDevice)
    accelerator.set_refine_iterations(0)


def _max_grid_error(coords, tier):
    worst = 0.
    for actual, (lat, lng) in zip(forward_batch(coords, tier=tier), coords):
        expected = reference.project_forward(lat, lng)
        assert actual.zone == expected.zone
        assert actual.hemisphere == expected.hemisphere
        worst = max(
            worst,
            abs(actual.easting - expected.easting),
            abs(actual.northing - expected.northing),
        )
    return worst


def _max_angle_error(coords, tier):
    utms = [reference.project_forward(lat, lng) for lat, lng in coords]
    worst = 0.
    for actual, utm in zip(inverse_batch(utms, tier=tier), utms):
        expected = reference.project_inverse(utm.easting, utm.northing, utm.zone, utm.hemisphere)
        worst = max(worst, abs(actual.lat - expected.lat), abs(actual.lng - expected.lng))
    return worst


def test_forward_full_tier():
    assert _max_grid_error(sample_coords(200, seed=11), FULL) < 1e-3


def test_forward_fast_tier():
    assert _max_grid_error(sample_coords(200, seed=12), FAST) < 1e-2


def test_inverse_full_tier():
    assert _max_angle_error(sample_coords(200, seed=13), FULL) < 1e-7


def test_inverse_fast_tier():
    assert _max_angle_error(sample_coords(200, seed=14), FAST) < 1e-6


def test_forward_scenarios():
    utms = forward_batch([(0., 0.), (40.7128, -74.0060), (-33.8688, 151.2093)])
    assert [(x.zone, x.hemisphere) for x in utms] == [(31, 'N'), (18, 'N'), (56, 'S')]
    assert utms[0].easting == approx(166021.4431, abs=1e-3)
    assert utms[0].northing == approx(0., abs=1e-6)


def test_round_trip_antimeridian():
    coords = [(0., 179.), (0., -179.), (84., 0.), (-80., 0.)]
    points = inverse_batch(forward_batch(coords))
    for point, (lat, lng) in zip(points, coords):
        assert point.lat == approx(lat, abs=1e-7)
        assert point.lng == approx(lng, abs=1e-7)


def test_kernel_layout():
    out = forward_kernel(pack_forward(np.array([0., -10.]), np.array([0., 0.])))
    assert out.dtype == np.float32
    assert out.shape == (2, FORWARD_OUT_WIDTH)
    assert out[:, 4].tolist() == [31., 31.]
    assert out[:, 5].tolist() == [1., 0.]
    assert np.all(out[:, 6:] == 0)

    back = inverse_kernel(out)
    assert back.shape == (2, 4)
    lat = back[:, 0].astype(np.float64) + back[:, 1]
    assert lat.tolist() == approx([0., -10.], abs=1e-9)


def test_pack_inverse():
    buffer = pack_inverse([500000.25], [1e7 - 0.125], [31], [False])
    assert buffer.dtype == np.float32
    assert buffer.shape == (1, 8)
    assert float(buffer[0, 0]) + float(buffer[0, 1]) == 500000.25
    assert float(buffer[0, 2]) + float(buffer[0, 3]) == 1e7 - 0.125
    assert buffer[0, 4:].tolist() == [31., 0., 0., 0.]


def test_pack_forward_tiny_southern_latitude():
    buffer = pack_forward(np.array([-1e-46, -0., 0.]), np.zeros(3))
    assert buffer[:, 0].tolist() == [0., 0., 0.]
    assert buffer[0, 1] < 0
    assert buffer[1:, 1].tolist() == [0., 0.]


def test_tiny_southern_latitude():
    coords = [(-1e-46, 10.), (-0., 10.), (1e-46, 10.)]
    for actual, (lat, lng) in zip(forward_batch(coords), coords):
        expected = reference.project_forward(lat, lng)
        assert actual.hemisphere == expected.hemisphere
        assert actual.northing == approx(expected.northing, abs=1e-3)

    assert forward_batch(coords)[0].hemisphere == 'S'


@pytest.mark.parametrize('tier', [FULL, FAST])
def test_off_grid_inverse_returns(tier):
    # Huge northings turn into huge angles; the kernel cost stays fixed
    utms = [UTMCoordinate(500000., 1e22, 31, 'N'), UTMCoordinate(500000., 0., 31, 'N')]
    points = inverse_batch(utms, tier=tier)
    assert len(points) == 2
    assert points[1].lat == approx(0., abs=1e-7)
    assert points[1].lng == approx(3., abs=1e-7)


def test_empty_batches():
    assert forward_batch([]) == []
    assert inverse_batch([]) == []


def test_refinement():
    coords = sample_coords(20, seed=15)
    refined = forward_batch(coords, tier=FAST, refine_iterations=2)
    for actual, (lat, lng) in zip(refined, coords):
        expected = reference.project_forward(lat, lng)
        assert actual.easting == approx(expected.easting, abs=1e-2)
        assert actual.northing == approx(expected.northing, abs=1e-2)

    accelerator.set_refine_iterations(1)
    assert len(forward_batch(coords[:3])) == 3

    with pytest.raises(ValueError):
        accelerator.set_refine_iterations(-1)


def test_emulated_device_chunks():
    device = EmulatedDevice(max_workers=4, chunk_rows=7)
    buffer = np.arange(100, dtype=np.float32).reshape(50, 2)

    out = device.submit(lambda chunk: chunk * 2, buffer, 2).result(timeout=10)
    np.testing.assert_array_equal(out, buffer * 2)

    empty = device.submit(lambda chunk: chunk, np.zeros((0, 2), dtype=np.float32), 2)
    assert empty.result().shape == (0, 2)
    device.close()


def test_emulated_device_failure():
    device = EmulatedDevice(chunk_rows=10)

    def kernel(chunk):
        if chunk[0, 0] >= 20:
            raise RuntimeError('kernel fault')
        return chunk

    future = device.submit(kernel, np.arange(60, dtype=np.float32).reshape(60, 1), 1)
    with pytest.raises(RuntimeError, match='kernel fault'):
        future.result(timeout=10)

    # Submitted batches cannot be cancelled
    assert not future.cancel()
    device.close()


def test_emulated_device_validation():
    with pytest.raises(ValueError):
        EmulatedDevice(chunk_rows=0)


class _BrokenDevice(Device):
    def submit(self, kernel, buffer, out_width):
        future = Future()
        future.set_exception(RuntimeError('device lost'))
        return future


def test_device_failure_propagates():
    accelerator.set_device_factory(_BrokenDevice)
    with pytest.raises(RuntimeError, match='device lost'):
        forward_batch([(0., 0.)])

    with pytest.raises(RuntimeError, match='device lost'):
        inverse_batch([UTMCoordinate(500000., 0., 31, 'N')])


def test_device_creation_failure():
    def factory():
        raise OSError('no device')

    accelerator.set_device_factory(factory)
    with pytest.raises(BackendUnavailableError) as exc:
        accelerator.get_device()

    assert exc.value.backend == 'accelerator'
    assert 'no device' in str(exc.value)


def test_get_device_created_once():
    calls = []

    def factory():
        calls.append(1)
        return EmulatedDevice()

    accelerator.set_device_factory(factory)
    devices = []
    threads = [
        threading.Thread(target=lambda: devices.append(accelerator.get_device()))
        for _ in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert all(device is devices[0] for device in devices)


def test_probe():
    accelerator.probe()
    accelerator.probe(FAST)


def test_probe_wrong_answer():
    class _WrongDevice(Device):
        def submit(self, kernel, buffer, out_width):
            future = Future()
            future.set_result(np.zeros((len(buffer), out_width), dtype=np.float32))
            return future

    accelerator.set_device_factory(_WrongDevice)
    with pytest.raises(BackendUnavailableError):
        accelerator.probe()


def test_split_combine():
    values = np.array([1 / 3, 166021.44308054, -1e7])
    hi, lo = accelerator.split_float64(values)
    assert hi.dtype == np.float32
    np.testing.assert_allclose(accelerator.combine_float64(hi, lo), values, rtol=1e-14)
    assert isinstance(inverse_batch([UTMCoordinate(500000., 0., 31, 'N')])[0], LatLng)
