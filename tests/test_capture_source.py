import threading

import pytest

from headcam.capture import CaptureSource, CaptureState
from headcam.tracking import FrameSize
from headcam.utils import DeviceInfo, DevicePermissionError, DeviceUnavailableError

DEVICES = [DeviceInfo('0', 'Integrated Camera'), DeviceInfo('1', 'USB Camera')]


@pytest.fixture
def errors():
    return []


@pytest.fixture
def sizes():
    return []


@pytest.fixture
def source(fake_stream_cls, errors, sizes):
    return CaptureSource(
        stream_factory=fake_stream_cls,
        device_lister=lambda: DEVICES,
        on_resolution=sizes.append,
        on_error=errors.append
    )


def test_starts_unbound_without_frames(source):
    assert source.state == CaptureState.UNBOUND
    assert source.latest_frame() is None
    assert source.device_id is None


def test_enumeration_state_visible_to_lister(fake_stream_cls):
    seen = []

    def lister():
        seen.append(capture.state)
        return DEVICES

    capture = CaptureSource(stream_factory=fake_stream_cls, device_lister=lister)

    assert capture.list_devices() == DEVICES
    assert seen == [CaptureState.ENUMERATING]
    assert capture.state == CaptureState.UNBOUND


def test_failing_lister_gives_empty_list(fake_stream_cls):
    def lister():
        raise OSError("no video4linux")

    capture = CaptureSource(stream_factory=fake_stream_cls, device_lister=lister)
    assert capture.list_devices() == []
    assert capture.state == CaptureState.UNBOUND


def test_select_streams_frames_and_reports_resolution(source, sizes):
    assert source.select_device(0)

    assert source.state == CaptureState.STREAMING
    assert source.device_id == '0'
    assert source.frame_size == FrameSize(640, 480)
    assert sizes == [FrameSize(640, 480)]
    assert source.latest_frame().shape == (480, 640, 3)


def test_switch_releases_old_stream_before_opening_new(source, fake_stream_cls):
    source.select_device('0')
    source.select_device('1')

    assert fake_stream_cls.events == [('open', '0'), ('release', '0'), ('open', '1')]
    assert source.device_id == '1'
    assert source.get_stats()['streams_opened'] == 2


def test_permission_denied_is_reported_not_raised(source, errors):
    assert not source.select_device('denied')

    assert source.state == CaptureState.UNBOUND
    assert len(errors) == 1
    assert isinstance(errors[0], DevicePermissionError)
    assert errors[0].device_id == 'denied'
    assert source.latest_frame() is None


def test_missing_device_after_switch_leaves_source_unbound(source, errors, fake_stream_cls):
    source.select_device('0')
    assert not source.select_device('missing')

    assert isinstance(source.last_error, DeviceUnavailableError)
    assert fake_stream_cls.instances[0].released
    assert source.state == CaptureState.UNBOUND
    assert source.get_stats()['open_failures'] == 1


def test_stream_lost_mid_session(source, errors, fake_stream_cls):
    source.select_device('0')
    fake_stream_cls.instances[0].fail()

    assert source.state == CaptureState.UNBOUND
    assert source.latest_frame() is None
    assert isinstance(errors[0], DeviceUnavailableError)
    assert source.get_stats()['streams_lost'] == 1

    # Stale handlers from the lost stream are ignored after rebinding
    assert source.select_device('1')
    fake_stream_cls.instances[0].on_resolution(1920, 1080)
    assert source.frame_size == FrameSize(640, 480)


def test_error_callback_failure_is_contained(fake_stream_cls):
    def explode(error):
        raise RuntimeError("handler bug")

    capture = CaptureSource(stream_factory=fake_stream_cls, device_lister=lambda: DEVICES, on_error=explode)
    assert not capture.select_device('missing')
    assert capture.state == CaptureState.UNBOUND


def test_close_releases_stream(source, fake_stream_cls):
    source.select_device('1')
    source.close()
    source.close()

    assert fake_stream_cls.events[-1] == ('release', '1')
    assert fake_stream_cls.events.count(('release', '1')) == 1
    assert source.state == CaptureState.UNBOUND


def test_reselecting_same_device_ignores_old_stream_callbacks(source, errors, fake_stream_cls):
    source.select_device('0')
    old = fake_stream_cls.instances[0]
    assert source.select_device('0')
    new = fake_stream_cls.instances[1]

    old.fail()
    old.on_resolution(1920, 1080)

    assert source.state == CaptureState.STREAMING
    assert not new.released
    assert errors == []
    assert source.frame_size == FrameSize(640, 480)
    assert source.get_stats()['stale_callbacks'] == 2


def test_loss_reported_while_closing_does_not_block(fake_stream_cls, errors):
    class GrabThreadStream(fake_stream_cls):
        """release() joins a grab thread that reports loss on its way out."""

        def release(self):
            grab = threading.Thread(target=self.fail)
            grab.start()
            grab.join(timeout=2.0)
            self.joined = not grab.is_alive()
            super().release()

    capture = CaptureSource(stream_factory=GrabThreadStream, device_lister=lambda: DEVICES,
                            on_error=errors.append)
    capture.select_device('0')
    capture.close()

    assert GrabThreadStream.instances[0].joined
    assert errors == []
    assert capture.state == CaptureState.UNBOUND
