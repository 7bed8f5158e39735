import numpy as np
import pytest

from headcam.camera import CameraMotionSmoother, SmoothingConfig, implied_pose, rescale_alpha
from headcam.tracking import ControlSignal


def distance(state, goal):
    return np.linalg.norm(np.array(state.position) - np.array(goal.position))


def test_no_signal_keeps_seeded_pose():
    smoother = CameraMotionSmoother(SmoothingConfig())
    initial = smoother.state

    for _ in range(50):
        state = smoother.advance(None)

    assert state == initial
    assert smoother.implied_pose() is None
    assert smoother.get_stats()['idle_ticks'] == 50


def test_position_converges_geometrically():
    config = SmoothingConfig(alpha_position=0.05, settle_epsilon=0.0)
    smoother = CameraMotionSmoother(config)
    signal = ControlSignal(dx=0.0, dy=0.0, size=0.2)
    goal_position, _, _ = implied_pose(signal, config)

    previous = np.linalg.norm(np.array(smoother.state.position) - goal_position)
    for _ in range(100):
        state = smoother.advance(signal)
        current = np.linalg.norm(np.array(state.position) - goal_position)
        assert current == pytest.approx(previous * 0.95, rel=1e-9)
        previous = current

    for _ in range(600):
        state = smoother.advance(signal)
    assert np.linalg.norm(np.array(state.position) - goal_position) < 1e-6


def test_absent_samples_hold_last_target_and_keep_blending():
    smoother = CameraMotionSmoother(SmoothingConfig(alpha_position=0.1))
    smoother.advance(ControlSignal(dx=0.3, dy=-0.1, size=0.3))
    goal = smoother.implied_pose()

    positions = []
    for _ in range(40):
        state = smoother.advance(None)
        assert smoother.implied_pose() == goal
        positions.append(distance(state, goal))

    assert positions[-1] < positions[0]
    assert all(b < a for a, b in zip(positions, positions[1:]))
    assert smoother.get_stats()['held_ticks'] == 40


def test_convergence_is_monotone_per_channel():
    config = SmoothingConfig(alpha_position=0.07, alpha_target=0.2, alpha_fov=0.1,
                             look_gain_x=1.5, look_gain_y=-0.5, depth_gain=1.0)
    smoother = CameraMotionSmoother(config)
    sequence = [ControlSignal(0.4, 0.2, 0.1)] + [None] * 5 + [ControlSignal(-0.3, -0.25, 0.5)] + [None] * 60

    for signal in sequence:
        before = smoother.state
        after = smoother.advance(signal)
        goal = smoother.implied_pose()
        for b, a, g in zip(before.position + before.target + (before.fov,),
                           after.position + after.target + (after.fov,),
                           goal.position + goal.target + (goal.fov,)):
            assert abs(g - a) <= abs(g - b) + 1e-12


def test_settled_state_stops_changing():
    smoother = CameraMotionSmoother(SmoothingConfig(alpha_position=0.5, alpha_target=0.5,
                                                    alpha_fov=0.5, settle_epsilon=1e-3))
    smoother.advance(ControlSignal(0.1, 0.1, 0.1))
    for _ in range(100):
        smoother.advance(None)

    assert smoother.is_settled
    frozen = smoother.state
    for _ in range(10):
        assert smoother.advance(None) == frozen


@pytest.mark.parametrize('size', [-3.0, 0.0, 0.5, 1.0, 25.0])
def test_fov_stays_in_range(size):
    config = SmoothingConfig(alpha_fov=1.0, fov_min=30.0, fov_max=60.0, size_gain=-40.0)
    smoother = CameraMotionSmoother(config)
    for i in range(30):
        state = smoother.advance(ControlSignal(0.0, 0.0, size * (1 + i % 3)))
        assert 30.0 <= state.fov <= 60.0


def test_initial_fov_is_clamped():
    smoother = CameraMotionSmoother(SmoothingConfig(initial_fov=90.0, fov_min=30.0, fov_max=60.0))
    assert smoother.state.fov == 60.0


def test_no_jump_across_absent_gaps():
    alpha = 0.05
    smoother = CameraMotionSmoother(SmoothingConfig(alpha_position=alpha, alpha_target=alpha, alpha_fov=alpha,
                                                    look_gain_x=1.0, look_gain_y=1.0))
    rng = np.random.default_rng(7)
    signals = [ControlSignal(*rng.uniform(-0.5, 0.5, size=2), rng.uniform(0.0, 1.0)) for _ in range(20)]

    for signal in signals:
        for sample in [signal] + [None] * 10:
            before = smoother.state
            after = smoother.advance(sample)
            goal = smoother.implied_pose()

            step = np.linalg.norm(np.subtract(after.position, before.position))
            bound = alpha * np.linalg.norm(np.subtract(goal.position, before.position))
            assert step <= bound + 1e-12

            fov_step = abs(after.fov - before.fov)
            assert fov_step <= alpha * abs(goal.fov - before.fov) + 1e-12


def test_state_is_returned_by_value():
    smoother = CameraMotionSmoother()
    state = smoother.advance(ControlSignal(0.2, 0.2, 0.2))
    assert isinstance(state.position, tuple)
    with pytest.raises(AttributeError):
        state.fov = 10.0
    smoother.advance(None)
    assert smoother.state != state


def test_implied_pose_mapping():
    config = SmoothingConfig(gain_x=4.0, gain_y=2.0, base_y=1.0, depth=2.0, depth_gain=1.0,
                             look_gain_x=0.5, look_base_y=0.25, look_depth=-1.0,
                             base_fov=40.0, size_gain=-20.0)
    position, target, fov = implied_pose(ControlSignal(dx=-0.25, dy=0.1, size=0.5), config)

    assert position.tolist() == pytest.approx([-1.0, 1.2, 1.75])
    assert target.tolist() == pytest.approx([-0.125, 0.25, -1.0])
    assert fov == pytest.approx(30.0)


def test_rescaled_config_keeps_settle_time():
    config = SmoothingConfig(alpha_position=0.05, reference_rate_hz=60.0)
    fast = config.rescaled(120.0)

    assert fast.reference_rate_hz == 120.0
    assert (1 - fast.alpha_position) ** 2 == pytest.approx(1 - config.alpha_position)
    assert config.rescaled(60.0) is config
    assert rescale_alpha(1.0, 60.0, 30.0) == 1.0


@pytest.mark.parametrize('kwargs', [
    {'alpha_position': 0.0},
    {'alpha_target': 1.5},
    {'fov_min': 60.0, 'fov_max': 30.0},
    {'reference_rate_hz': 0.0},
    {'initial_position': (0.0, 1.0)},
])
def test_invalid_config_rejected(kwargs):
    with pytest.raises(ValueError):
        SmoothingConfig(**kwargs)


def test_config_from_dict_ignores_unknown_keys():
    config = SmoothingConfig.from_dict({'alpha_position': 0.2, 'initial_position': [1, 2, 3], 'bogus': 1})
    assert config.alpha_position == 0.2
    assert config.initial_position == (1.0, 2.0, 3.0)
