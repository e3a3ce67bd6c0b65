import unittest
from unittest import mock

from acts import ActRegistry
from config import TimingConfig
from transition_scheduler import (
    TransitionPhase,
    TransitionScheduler,
    crossfade_opacities,
    ease_in_out_cubic,
)


def make_scheduler(initial_act=1, loop=False, **timing):
    registry = ActRegistry.create_default()
    scheduler = TransitionScheduler(registry, TimingConfig(**timing), clock=lambda: 0.0,
                                    initial_act=initial_act, loop=loop)
    scheduler.init(now=0.0)
    return scheduler, registry


LIFECYCLE_HOOKS = ("prepare_entry", "start_entry", "enter", "start_exit", "finish_exit", "exit")


def record_hooks(test, registry):
    """Wrap every act's lifecycle hooks; returns the shared (act, hook) call list."""
    calls = []
    for act in registry:
        for hook in LIFECYCLE_HOOKS:
            def recorder(*args, _act=act, _hook=hook, _original=getattr(act, hook)):
                calls.append((_act.act_number, _hook))
                return _original(*args)
            patcher = mock.patch.object(act, hook, side_effect=recorder)
            patcher.start()
            test.addCleanup(patcher.stop)
    return calls


class TestCrossfade(unittest.TestCase):
    def test_easing_endpoints(self):
        self.assertEqual(ease_in_out_cubic(0.0), 0.0)
        self.assertEqual(ease_in_out_cubic(0.5), 0.5)
        self.assertEqual(ease_in_out_cubic(1.0), 1.0)

    def test_opacity_endpoints(self):
        self.assertEqual(crossfade_opacities(0.0), (1.0, 0.0))
        self.assertEqual(crossfade_opacities(1.0), (0.0, 1.0))

    def test_both_acts_visible_mid_fade(self):
        previous, nxt = crossfade_opacities(0.4)
        self.assertGreater(previous, 0.0)
        self.assertGreater(nxt, 0.0)
        self.assertLess(previous, 1.0)
        self.assertLess(nxt, 1.0)


class TestTransitionScheduler(unittest.TestCase):
    def test_init_shows_only_current_act(self):
        scheduler, registry = make_scheduler()
        self.assertTrue(registry.get(1).visible)
        self.assertEqual(registry.get(1).group.opacity, 1.0)
        for act_id in (2, 3, 4):
            self.assertFalse(registry.get(act_id).visible)
        self.assertEqual(scheduler.get_phase(), TransitionPhase.IDLE)

    def test_phase_thresholds(self):
        scheduler, registry = make_scheduler(transition_duration=3000)
        self.assertTrue(scheduler.transition_to_act(2, now=1000.0))
        self.assertEqual(scheduler.get_phase(), TransitionPhase.FADE_OUT)
        self.assertTrue(registry.get(2).visible)

        self.assertEqual(scheduler.update(1749.0), TransitionPhase.FADE_OUT)
        self.assertEqual(scheduler.get_current_act_number(), 1)

        self.assertEqual(scheduler.update(1750.0), TransitionPhase.TRANSITION)
        self.assertEqual(scheduler.get_current_act_number(), 2)
        self.assertIs(scheduler.get_current_act(), registry.get(2))

        self.assertEqual(scheduler.update(3249.0), TransitionPhase.TRANSITION)
        self.assertEqual(scheduler.update(3250.0), TransitionPhase.FADE_IN)

        self.assertEqual(scheduler.update(3999.0), TransitionPhase.FADE_IN)
        self.assertEqual(scheduler.update(4000.0), TransitionPhase.IDLE)
        self.assertEqual(scheduler.get_transition_progress(), 0.0)
        self.assertFalse(registry.get(1).visible)
        self.assertEqual(registry.get(2).group.opacity, 1.0)
        self.assertIsNone(scheduler.state.previous_act)
        self.assertIsNone(scheduler.state.next_act)

    def test_lifecycle_hooks_fire_once_at_thresholds(self):
        scheduler, registry = make_scheduler(transition_duration=3000)
        calls = record_hooks(self, registry)

        scheduler.transition_to_act(2, now=0.0)
        self.assertEqual(calls, [(1, "start_exit"), (2, "prepare_entry")])

        expected = {
            749.0: [],
            750.0: [(2, "start_entry")],
            2249.0: [],
            2250.0: [(1, "finish_exit")],
            2999.0: [],
            3000.0: [(1, "exit"), (2, "enter")],
        }
        for now, hooks in expected.items():
            del calls[:]
            scheduler.update(now)
            self.assertEqual(calls, hooks, msg=f"t={now}")

        del calls[:]
        scheduler.update(3100.0)
        self.assertEqual(calls, [])

    def test_late_tick_crosses_every_threshold(self):
        scheduler, registry = make_scheduler(transition_duration=3000)
        scheduler.transition_to_act(3, now=1000.0)
        calls = record_hooks(self, registry)
        self.assertEqual(scheduler.update(9000.0), TransitionPhase.IDLE)
        self.assertEqual(calls, [(3, "start_entry"), (1, "finish_exit"), (1, "exit"), (3, "enter")])
        self.assertEqual(scheduler.get_current_act_number(), 3)
        self.assertTrue(registry.get(3).is_active)
        self.assertFalse(registry.get(1).is_active)

    def test_opacity_applied_to_both_acts(self):
        scheduler, registry = make_scheduler(transition_duration=3000)
        scheduler.transition_to_act(2, now=1000.0)
        scheduler.update(2200.0)
        expected_previous, expected_next = crossfade_opacities(0.4)
        self.assertAlmostEqual(registry.get(1).group.opacity, expected_previous)
        self.assertAlmostEqual(registry.get(2).group.opacity, expected_next)

    def test_transition_to_current_act_is_noop(self):
        scheduler, _ = make_scheduler()
        before = scheduler.snapshot()
        self.assertFalse(scheduler.transition_to_act(1, now=500.0))
        self.assertEqual(scheduler.snapshot(), before)

    def test_request_during_transition_is_ignored(self):
        scheduler, registry = make_scheduler(transition_duration=3000)
        scheduler.transition_to_act(2, now=1000.0)
        scheduler.update(1500.0)
        before = scheduler.snapshot()
        self.assertFalse(scheduler.transition_to_act(3, now=1600.0))
        self.assertEqual(scheduler.snapshot(), before)
        self.assertIs(scheduler.state.next_act, registry.get(2))

    def test_invalid_target_is_logged_and_ignored(self):
        scheduler, _ = make_scheduler()
        with mock.patch("transition_scheduler.log_event") as log_event_mock:
            self.assertFalse(scheduler.transition_to_act(7, now=100.0))
        self.assertEqual(log_event_mock.call_args.args[0], "WARNING")
        self.assertEqual(scheduler.get_phase(), TransitionPhase.IDLE)
        self.assertEqual(scheduler.get_current_act_number(), 1)

    def test_demo_timing_overrides_transition_duration(self):
        scheduler, _ = make_scheduler(transition_duration=3000)
        scheduler.set_demo_timing(3000, 300)
        scheduler.enable_demo_mode(True)
        self.assertEqual(scheduler.active_transition_duration(), 300.0)

        scheduler.transition_to_act(2, now=1000.0)
        self.assertEqual(scheduler.update(1074.0), TransitionPhase.FADE_OUT)
        self.assertEqual(scheduler.update(1075.0), TransitionPhase.TRANSITION)
        self.assertEqual(scheduler.update(1225.0), TransitionPhase.FADE_IN)
        self.assertEqual(scheduler.update(1300.0), TransitionPhase.IDLE)

        scheduler.enable_demo_mode(False)
        self.assertEqual(scheduler.active_transition_duration(), 3000.0)

    def test_completion_callback(self):
        scheduler, _ = make_scheduler(transition_duration=1000)
        calls = []
        scheduler.on_transition_complete = lambda act, now: calls.append((act, now))
        scheduler.transition_to_act(4, now=0.0)
        scheduler.update(1000.0)
        self.assertEqual(calls, [(4, 1000.0)])
        self.assertEqual(scheduler.act_progress_timer, 1000.0)

    def test_auto_progress_advances_after_act_duration(self):
        scheduler, registry = make_scheduler(act_duration=1000, transition_duration=100)
        scheduler.set_auto_progress(True, now=0.0)
        self.assertEqual(scheduler.update(999.0), TransitionPhase.IDLE)
        self.assertEqual(scheduler.update(1000.0), TransitionPhase.FADE_OUT)
        self.assertIs(scheduler.state.next_act, registry.get(2))

    def test_auto_progress_stops_at_last_act(self):
        scheduler, _ = make_scheduler(initial_act=4, act_duration=1000)
        scheduler.set_auto_progress(True, now=0.0)
        self.assertEqual(scheduler.update(5000.0), TransitionPhase.IDLE)
        self.assertEqual(scheduler.get_current_act_number(), 4)

    def test_auto_progress_wraps_in_demo_or_loop(self):
        for demo, loop in ((True, False), (False, True)):
            scheduler, registry = make_scheduler(initial_act=4, loop=loop,
                                                 act_duration=1000, demo_act_duration=1000)
            scheduler.enable_demo_mode(demo)
            scheduler.set_auto_progress(True, now=0.0)
            self.assertEqual(scheduler.update(1000.0), TransitionPhase.FADE_OUT)
            self.assertIs(scheduler.state.next_act, registry.get(1))

    def test_quick_demo(self):
        scheduler, _ = make_scheduler()
        scheduler.start_quick_demo(now=0.0)
        self.assertTrue(scheduler.demo_mode)
        self.assertTrue(scheduler.auto_progress)
        self.assertEqual(scheduler.active_act_duration(), 3000.0)
        self.assertEqual(scheduler.active_transition_duration(), 300.0)
        self.assertEqual(scheduler.update(3000.0), TransitionPhase.FADE_OUT)

        scheduler.stop_demo()
        self.assertFalse(scheduler.demo_mode)
        self.assertFalse(scheduler.auto_progress)

    def test_set_timing_config_ignores_unknown_fields(self):
        scheduler, _ = make_scheduler()
        with mock.patch("transition_scheduler.log_event") as log_event_mock:
            scheduler.set_timing_config(act_duration=2000, bogus=1)
        self.assertEqual(scheduler.timing.act_duration, 2000.0)
        self.assertFalse(hasattr(scheduler.timing, "bogus"))
        levels = [call.args[0] for call in log_event_mock.call_args_list]
        self.assertIn("WARNING", levels)

    def test_dispose_hides_all_acts(self):
        scheduler, registry = make_scheduler()
        scheduler.set_auto_progress(True, now=0.0)
        scheduler.dispose()
        self.assertFalse(scheduler.auto_progress)
        self.assertTrue(all(not act.visible for act in registry))


if __name__ == "__main__":
    unittest.main()
