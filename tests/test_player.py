"""Tests for the playback scheduler state machine."""

import logging
import math

import pytest

from motionkin.motion.errors import InvalidControlError, MotionFileError
from motionkin.motion.player import MotionPlayer
from motionkin.motion.types import Axis, Channel, PlaybackSnapshot
from motionkin.scene.nodes import SceneNode

ARM_CSV = "time_ms,target,channel,axis,value\n0,Arm,position,x,0\n1000,Arm,position,x,10\n"


@pytest.fixture()
def player():
    p = MotionPlayer()
    p.load_timeline(ARM_CSV)
    return p


@pytest.fixture()
def events(player):
    seen = []
    player.add_listener(seen.append)
    return seen


# ---------------------------------------------------------------------------
# Initial state and snapshots
# ---------------------------------------------------------------------------


class TestInitialState:
    def test_defaults(self):
        p = MotionPlayer()
        s = p.get_state()
        assert s == PlaybackSnapshot(playing=False, loop=True, speed=1.0, progress=0.0, time_ms=0.0, duration_ms=1.0)

    def test_snapshot_dict_uses_export_names(self, player):
        d = player.get_state().as_dict()
        assert d == {
            "playing": False,
            "loop": True,
            "speed": 1.0,
            "progress": 0.0,
            "timeMs": 0.0,
            "durationMs": 1000.0,
        }

    def test_constructor_rejects_bad_speed(self):
        with pytest.raises(InvalidControlError):
            MotionPlayer(speed=0.0)

    def test_constructor_rejects_empty_delimiter(self):
        with pytest.raises(InvalidControlError):
            MotionPlayer(delimiter="")

    def test_instances_are_independent(self):
        a = MotionPlayer()
        b = MotionPlayer()
        a.load_timeline(ARM_CSV)
        a.play()
        a.tick(250)
        assert b.time_ms == 0.0
        assert b.duration_ms == 1.0
        assert not b.playing


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestTransitions:
    def test_play_then_pause_freezes_time(self, player):
        player.play()
        player.tick(300)
        player.pause()
        player.tick(300)
        assert not player.playing
        assert player.time_ms == 300.0

    def test_tick_ignored_while_paused(self, player, events):
        player.tick(500)
        assert player.time_ms == 0.0
        assert events == []

    @pytest.mark.parametrize("setup", ["paused", "playing", "mid", "ended"])
    def test_stop_from_any_state(self, player, setup):
        if setup in ("playing", "mid"):
            player.play()
        if setup == "mid":
            player.tick(420)
        if setup == "ended":
            player.set_loop(False)
            player.play()
            player.tick(5000)
        player.stop()
        assert player.time_ms == 0.0
        assert player.progress == 0.0
        assert not player.playing

    def test_speed_multiplies_advance(self, player):
        player.set_speed(2.5)
        player.play()
        player.tick(100)
        assert player.time_ms == pytest.approx(250.0)

    def test_loop_wraps(self, player):
        player.play()
        player.tick(900)
        player.tick(200)
        assert player.time_ms == pytest.approx(100.0)
        assert player.playing

    def test_no_loop_clamps_and_pauses(self, player):
        player.set_loop(False)
        player.play()
        player.tick(900)
        player.tick(200)
        assert player.time_ms == 1000.0
        assert player.progress == 1.0
        assert not player.playing

    def test_end_of_timeline_holds_final_pose(self, player):
        player.set_loop(False)
        player.play()
        player.tick(5000)
        assert player.last_pose["Arm"].position[0] == 10.0

    def test_reaching_duration_exactly_does_not_wrap(self, player):
        player.play()
        player.tick(1000)
        assert player.time_ms == 1000.0
        assert player.playing

    def test_large_dt_wraps_modulo(self, player):
        player.play()
        player.tick(3250)
        assert player.time_ms == pytest.approx(250.0)

    @pytest.mark.parametrize("dt", [-16.0, math.nan, math.inf])
    def test_bad_dt_treated_as_zero(self, player, dt):
        player.play()
        player.tick(100)
        player.tick(dt)
        assert player.time_ms == 100.0
        assert player.playing

    def test_progress_tracks_time(self, player):
        player.play()
        player.tick(250)
        assert player.progress == pytest.approx(0.25)


# ---------------------------------------------------------------------------
# Control input validation
# ---------------------------------------------------------------------------


class TestControlInput:
    @pytest.mark.parametrize("bad", [0.0, -1.0, math.nan, math.inf, "fast"])
    def test_set_speed_rejects(self, player, bad):
        with pytest.raises(InvalidControlError):
            player.set_speed(bad)
        assert player.speed == 1.0

    def test_invalid_control_is_value_error(self, player):
        with pytest.raises(ValueError):
            player.set_speed(-2)

    def test_no_speed_clamp(self, player):
        player.set_speed(250.0)
        assert player.speed == 250.0
        player.set_speed(0.001)
        assert player.speed == 0.001

    def test_set_progress_scrubs_when_paused(self, player):
        player.set_progress(0.5)
        assert player.time_ms == 500.0
        assert player.last_pose["Arm"].position[0] == pytest.approx(5.0)
        assert not player.playing

    @pytest.mark.parametrize("f,expected", [(-0.5, 0.0), (1.7, 1000.0)])
    def test_set_progress_clamps(self, player, f, expected):
        player.set_progress(f)
        assert player.time_ms == expected

    def test_set_progress_rejects_nan(self, player):
        with pytest.raises(InvalidControlError):
            player.set_progress(math.nan)

    def test_set_progress_ignored_while_playing(self, player):
        player.play()
        player.tick(100)
        player.set_progress(0.9)
        assert player.time_ms == 100.0
        player.tick(16)
        assert player.time_ms == pytest.approx(116.0)


# ---------------------------------------------------------------------------
# Listener notification
# ---------------------------------------------------------------------------


class TestListeners:
    def test_each_mutation_notifies_once(self, player, events):
        player.play()
        player.tick(16)
        player.set_speed(2.0)
        player.set_loop(False)
        player.pause()
        player.set_progress(0.5)
        player.stop()
        assert len(events) == 7
        assert [e.playing for e in events] == [True, True, True, True, False, False, False]
        assert events[-1].time_ms == 0.0

    def test_redundant_play_pause_are_silent(self, player, events):
        player.pause()
        player.play()
        player.play()
        assert len(events) == 1

    def test_listener_sees_state_before_return(self, player):
        seen = []
        player.add_listener(lambda s: seen.append((s.time_ms, player.time_ms)))
        player.play()
        player.tick(40)
        assert seen[-1] == (40.0, 40.0)

    def test_remove_listener(self, player, events):
        player.remove_listener(events.append)
        player.play()
        assert events == []
        player.remove_listener(events.append)  # unknown listener: no error

    def test_end_of_timeline_notifies_paused(self, player, events):
        player.set_loop(False)
        player.play()
        player.tick(2000)
        assert events[-1].playing is False
        assert events[-1].progress == 1.0


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoading:
    def test_load_resets_to_paused_zero(self, player, events):
        player.play()
        player.tick(600)
        player.load_timeline("0,B,scale,x,1\n4000,B,scale,x,2\n")
        assert not player.playing
        assert player.time_ms == 0.0
        assert player.duration_ms == 4000.0
        assert events[-1].duration_ms == 4000.0
        assert events[-1].time_ms == 0.0

    def test_load_keeps_loop_and_speed(self, player):
        player.set_loop(False)
        player.set_speed(3.0)
        player.load_timeline(ARM_CSV)
        assert player.loop is False
        assert player.speed == 3.0

    def test_load_replaces_whole_timeline(self, player):
        old = player.timeline
        player.load_timeline("0,B,scale,x,1\n")
        assert player.timeline is not old
        assert player.timeline.targets == ["B"]
        assert player.timeline.get("Arm", Channel.POSITION, Axis.X) is None

    def test_empty_dataset_plays_without_pose(self):
        p = MotionPlayer()
        p.load_timeline("# nothing here\n")
        p.play()
        p.tick(5)
        assert p.duration_ms == 1.0
        assert p.last_pose == {}

    def test_load_logs_summary(self, caplog):
        logger = logging.getLogger("motionkin.test")
        p = MotionPlayer(logger=logger)
        with caplog.at_level(logging.INFO, logger="motionkin.test"):
            p.load_timeline(ARM_CSV + "bad,row\n")
        assert "tracks 1" in caplog.text
        assert "dropped 1" in caplog.text

    def test_load_timeline_file(self, tmp_path):
        f = tmp_path / "motion.csv"
        f.write_text("\ufeff" + ARM_CSV, encoding="utf-8")
        p = MotionPlayer()
        tl = p.load_timeline_file(f)
        assert tl.duration_ms == 1000.0
        assert p.timeline is tl

    def test_load_missing_file_raises(self, tmp_path):
        p = MotionPlayer()
        with pytest.raises(MotionFileError):
            p.load_timeline_file(tmp_path / "nope.csv")
        assert p.duration_ms == 1.0

    def test_custom_dialect(self):
        p = MotionPlayer(delimiter=";", comment_prefix="//")
        p.load_timeline("// semicolons\n0;A;position;x;0\n10;A;position;x;1\n")
        assert p.duration_ms == 10.0

    def test_read_timeline_does_not_load(self, player, events):
        player.set_progress(0.5)
        tl = player.read_timeline("0,B,scale,x,1\n4000,B,scale,x,2\n")
        assert tl.duration_ms == 4000.0
        assert player.duration_ms == 1000.0
        assert player.time_ms == 500.0
        assert len(events) == 1

    def test_failed_file_read_keeps_scene_and_playhead(self, tmp_path):
        arm = SceneNode("Arm")
        p = MotionPlayer(resolver={"Arm": arm})
        p.load_timeline(ARM_CSV)
        p.set_progress(0.5)
        with pytest.raises(MotionFileError):
            p.read_timeline_file(tmp_path / "nope.csv")
        assert p.time_ms == 500.0
        assert arm.position.x == pytest.approx(5.0)


# ---------------------------------------------------------------------------
# Scenarios with a resolver
# ---------------------------------------------------------------------------


class TestWithResolver:
    def test_head_rotation_only(self):
        head = SceneNode("Head")
        head.position.set(1.0, 2.0, 3.0)
        p = MotionPlayer(resolver={"Head": head})
        p.load_timeline("0,Head,rotation_deg,x,0\n1000,Head,rotation_deg,x,90\n")
        p.play()
        p.tick(500)

        pose = p.last_pose["Head"]
        assert pose.is_set(Channel.ROTATION_DEG, Axis.X)
        assert not pose.has_channel(Channel.POSITION)
        assert not pose.has_channel(Channel.SCALE)

        assert head.rotation.x == pytest.approx(math.radians(45.0))
        assert head.position.as_tuple() == (1.0, 2.0, 3.0)
        assert head.scale.as_tuple() == (1.0, 1.0, 1.0)

    def test_unresolved_target_does_not_block_others(self):
        arm = SceneNode("Arm")
        p = MotionPlayer(resolver={"Arm": arm})
        p.load_timeline(ARM_CSV + "0,Ghost,position,y,4\n")
        p.set_progress(0.5)
        assert arm.position.x == pytest.approx(5.0)
        assert "Ghost" in p.last_pose

    def test_set_resolver_applies_current_pose(self, player):
        player.set_progress(1.0)
        arm = SceneNode("Arm")
        player.set_resolver({"Arm": arm})
        assert arm.position.x == 10.0

    def test_scrub_applies_pose_immediately(self):
        arm = SceneNode("Arm")
        p = MotionPlayer(resolver={"Arm": arm})
        p.load_timeline(ARM_CSV)
        p.set_progress(0.25)
        assert arm.position.x == pytest.approx(2.5)
