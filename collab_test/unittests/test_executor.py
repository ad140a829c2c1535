import tempfile
import unittest
import warnings
from pathlib import Path
from unittest.mock import MagicMock, patch

from collab_test.collaborator import Collaborator
from collab_test.discovery import CollaboratorRegistry
from collab_test.errors import (
    EnvironmentIsolationError,
    ParticipantError,
    SetupError,
    StructuralError,
)
from collab_test.isolation import EnvironmentIsolator, Namespace, NamespaceState
from collab_test.results import (
    COMPLETION_CHECK_GROUP,
    AssertionStatus,
    MemoryResultSink,
)
from collab_test.runner import ExecutionEngine, OutcomeStatus, RunState
from collab_test.runner.executor import NOT_SET_UP_MESSAGE


class Pairing(Collaborator):
    """Leader: collaborator A of the pairing scenario."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []
        self.set_up_results = []

    def initiateFoo(self):
        self.leader.calls.append(("initiate", self.participant_id, "Foo"))
        return "state1"

    def verify(self, key, state):
        self.leader.calls.append(("verify", self.participant_id, key, state))
        self.assert_true(state, f"{self.participant_id} saw {key}")

    def set_up(self):
        self.calls.append("set_up")
        if self.set_up_results:
            return self.set_up_results.pop(0)
        return super().set_up()

    def tear_down(self):
        self.calls.append("tear_down")


class PairingB(Collaborator):
    scenario_name = "Pairing"

    def initiateBar(self):
        self.leader.calls.append(("initiate", self.participant_id, "Bar"))
        return "state2"

    def verify(self, key, state):
        self.leader.calls.append(("verify", self.participant_id, key, state))
        self.assert_equal(state[:5], "state")

    def set_up(self):
        self.leader.calls.append("b.set_up")

    def tear_down(self):
        self.leader.calls.append("b.tear_down")


class PairingFailing(Collaborator):
    scenario_name = "Pairing"

    def initiate_broken(self):
        self.leader.calls.append(("initiate", self.participant_id, "broken"))
        raise ValueError("cannot build state")

    def initiate_after(self):
        self.leader.calls.append(("initiate", self.participant_id, "after"))
        return "state3"


class PairingBadVerifier(Collaborator):
    scenario_name = "Pairing"

    def verify(self, key, state):
        self.leader.calls.append(("verify", self.participant_id, key, state))
        raise KeyError(key)


class VerifyOnly(Collaborator):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []

    def verify(self, key, state):
        self.calls.append("verify")

    def set_up(self):
        self.calls.append("set_up")
        return super().set_up()

    def tear_down(self):
        self.calls.append("tear_down")


class ExecutorTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.original = Namespace(storage_prefix="", file_path=Path(self._tmp.name))
        self.state = NamespaceState(self.original)
        self.isolator = EnvironmentIsolator(state=self.state)
        self.sink = MemoryResultSink()

    def tearDown(self):
        self._tmp.cleanup()

    def make_engine(self, leader, *participants, **kwargs):
        registry = CollaboratorRegistry()
        for participant_id, cls in participants:
            registry.register_class(cls, participant_id=participant_id)
        return ExecutionEngine(
            leader,
            sink=self.sink,
            registry=registry,
            isolator=kwargs.pop("isolator", self.isolator),
            **kwargs,
        )


class TestPairingScenario(ExecutorTestCase):
    def test_every_initiator_meets_every_verifier(self):
        leader = Pairing(participant_id="a")
        result = self.make_engine(leader, ("b", PairingB)).run()

        self.assertEqual(leader.calls, [
            "set_up",
            ("initiate", "a", "Foo"),
            ("verify", "a", "Foo", "state1"),
            ("verify", "b", "Foo", "state1"),
            "tear_down",
            "set_up",
            ("initiate", "b", "Bar"),
            ("verify", "a", "Bar", "state2"),
            ("verify", "b", "Bar", "state2"),
            "tear_down",
        ])
        self.assertEqual(result.state, RunState.DONE)
        self.assertEqual(result.collaborators, ["a", "b"])
        self.assertTrue(result.all_passed)
        self.assertEqual(result.summary, {"pass": 4, "fail": 0, "exception": 0})

    def test_markers_created_and_deleted(self):
        leader = Pairing(participant_id="a")
        self.make_engine(leader, ("b", PairingB)).run()

        self.assertEqual(self.sink.deleted_markers, ["1", "2"])
        self.assertEqual(self.sink.leftover_markers, [])

    def test_collaborator_setup_is_never_used(self):
        leader = Pairing(participant_id="a")
        self.make_engine(leader, ("b", PairingB)).run()
        self.assertNotIn("b.set_up", leader.calls)
        self.assertNotIn("b.tear_down", leader.calls)

    def test_outcomes_record_verifiers(self):
        leader = Pairing(participant_id="a")
        result = self.make_engine(leader, ("b", PairingB)).run()

        self.assertEqual(
            [(o.participant_id, o.key, o.status, o.verifiers) for o in result.outcomes],
            [
                ("a", "Foo", OutcomeStatus.COMPLETED, ["a", "b"]),
                ("b", "Bar", OutcomeStatus.COMPLETED, ["a", "b"]),
            ],
        )

    def test_repeated_runs_are_identical(self):
        leader = Pairing(participant_id="a")
        self.make_engine(leader, ("b", PairingB)).run()
        first = list(leader.calls)
        leader.calls.clear()
        self.make_engine(leader, ("b", PairingB)).run()
        self.assertEqual(leader.calls, first)

    def test_run_from_the_leader(self):
        registry = CollaboratorRegistry()
        registry.register_class(PairingB, participant_id="b")
        leader = Pairing(participant_id="a")

        result = leader.run(sink=self.sink, registry=registry, isolator=self.isolator)

        self.assertEqual(len(result.outcomes), 2)
        self.assertFalse(leader.is_running)
        self.assertTrue(all(r.run_id == result.run_id for r in self.sink.assertions))

    def test_assertions_keep_issue_order(self):
        leader = Pairing(participant_id="a")
        self.make_engine(leader, ("b", PairingB)).run()
        self.assertEqual(
            [r.message for r in self.sink.assertions[:2]],
            ["a saw Foo", "Value 'state' is equal to value 'state'."],
        )

    def test_snake_case_initiator_key_reaches_verifiers_verbatim(self):
        keys = []

        class Publish(Collaborator):
            def initiate_foo(self):
                return "draft"

            def verify(self, key, state):
                keys.append(key)

        self.make_engine(Publish(participant_id="p")).run()
        self.assertEqual(keys, ["_foo"])


class TestRecoverableErrors(ExecutorTestCase):
    def test_initiator_error_skips_its_verifiers_only(self):
        leader = Pairing(participant_id="a")
        result = self.make_engine(leader, ("c", PairingFailing)).run()

        self.assertEqual(leader.calls, [
            "set_up",
            ("initiate", "a", "Foo"),
            ("verify", "a", "Foo", "state1"),
            "tear_down",
            "set_up",
            ("initiate", "c", "broken"),
            "tear_down",
            "set_up",
            ("initiate", "c", "after"),
            ("verify", "a", "_after", "state3"),
            "tear_down",
        ])

        failures = [r for r in self.sink.assertions if r.status != AssertionStatus.PASS]
        self.assertEqual(len(failures), 1)
        self.assertEqual(failures[0].status, AssertionStatus.EXCEPTION)
        self.assertEqual(failures[0].group, "Exception")
        self.assertEqual(failures[0].message, "ValueError: cannot build state")
        self.assertEqual(failures[0].caller.function, "initiate_broken()")

        self.assertEqual(self.sink.leftover_markers, [])
        self.assertEqual(len(self.sink.deleted_markers), 3)

        broken = result.outcomes[1]
        self.assertEqual(broken.status, OutcomeStatus.PARTICIPANT_ERROR)
        self.assertEqual(broken.verifiers, [])
        self.assertIsInstance(broken.errors[0], ParticipantError)
        self.assertIsInstance(broken.errors[0].original, ValueError)
        self.assertFalse(result.all_passed)

    def test_verifier_error_does_not_stop_other_verifiers(self):
        leader = Pairing(participant_id="a")
        result = self.make_engine(leader, ("x", PairingBadVerifier), ("b", PairingB)).run()

        verifications = [c for c in leader.calls if c[0] == "verify" and c[2] == "Foo"]
        self.assertEqual([c[1] for c in verifications], ["a", "x", "b"])
        self.assertEqual(result.outcomes[0].status, OutcomeStatus.PARTICIPANT_ERROR)
        self.assertEqual(result.outcomes[0].verifiers, ["a", "x", "b"])
        self.assertEqual(result.summary["exception"], 2)

    def test_setup_failure_skips_the_initiator(self):
        leader = Pairing(participant_id="a")
        leader.set_up_results = [False]
        result = self.make_engine(leader, ("b", PairingB)).run()

        self.assertEqual(leader.calls, [
            "set_up",
            "set_up",
            ("initiate", "b", "Bar"),
            ("verify", "a", "Bar", "state2"),
            ("verify", "b", "Bar", "state2"),
            "tear_down",
        ])
        failures = [r for r in self.sink.assertions if not r.passed]
        self.assertEqual([r.message for r in failures], [NOT_SET_UP_MESSAGE])
        self.assertEqual(self.sink.deleted_markers, ["1"])
        self.assertEqual(result.outcomes[0].status, OutcomeStatus.SETUP_FAILED)
        self.assertIsInstance(result.outcomes[0].errors[0], SetupError)

    def test_setup_exception_is_recorded(self):
        leader = Pairing(participant_id="a")
        with patch.object(leader, "set_up", side_effect=RuntimeError("no db")):
            result = self.make_engine(leader).run()

        statuses = [r.status for r in self.sink.assertions]
        self.assertEqual(statuses, [AssertionStatus.EXCEPTION, AssertionStatus.FAIL])
        self.assertEqual(result.outcomes[0].status, OutcomeStatus.SETUP_FAILED)

    def test_teardown_exception_is_recorded_and_marker_removed(self):
        leader = Pairing(participant_id="a")
        with patch.object(leader, "tear_down", side_effect=RuntimeError("locked")):
            self.make_engine(leader).run()

        self.assertEqual(self.sink.assertions[-1].message, "RuntimeError: locked")
        self.assertEqual(self.sink.leftover_markers, [])

    def test_warnings_become_failures_and_filters_are_restored(self):
        class Noisy(Collaborator):
            def initiate_it(self):
                warnings.warn("old api", DeprecationWarning)
                return 1

        filters_before = list(warnings.filters)
        self.make_engine(Noisy(participant_id="n")).run()

        self.assertEqual(len(self.sink.assertions), 1)
        record = self.sink.assertions[0]
        self.assertEqual(record.status, AssertionStatus.FAIL)
        self.assertEqual(record.group, "Warning")
        self.assertEqual(record.message, "DeprecationWarning: old api")
        self.assertEqual(warnings.filters, filters_before)


class TestEnvironment(ExecutorTestCase):
    def test_initiators_run_inside_the_isolated_environment(self):
        seen = []

        class Isolated(Collaborator):
            def initiate_first(self):
                seen.append((self.environment.storage_prefix, dict(self.environment.statics)))
                self.environment.statics["cache"] = "warm"

            def initiate_second(self):
                seen.append((self.environment.storage_prefix, dict(self.environment.statics)))

        self.make_engine(Isolated(participant_id="i")).run()

        self.assertTrue(seen[0][0].startswith("simpletest"))
        self.assertEqual(seen[0][0], seen[1][0])
        self.assertEqual(seen[1][1], {})
        self.assertIs(self.state.active, self.original)

    def test_release_once_even_when_a_run_is_interrupted(self):
        class Dies(Collaborator):
            def initiate_fatal(self):
                raise KeyboardInterrupt

        leader = Dies(participant_id="d")
        engine = self.make_engine(leader)
        with patch.object(self.isolator, "release", wraps=self.isolator.release) as release:
            with self.assertRaises(KeyboardInterrupt):
                engine.run()

        release.assert_called_once()
        self.assertIs(self.state.active, self.original)
        self.assertFalse(leader.is_running)
        # The fatal exit leaves its completion marker behind.
        self.assertEqual(len(self.sink.leftover_markers), 1)
        marker = self.sink.leftover_markers[0]
        self.assertEqual(marker.group, COMPLETION_CHECK_GROUP)
        self.assertEqual(marker.caller.function, "Dies.initiate_fatal()")

    def test_marker_is_present_while_the_initiator_runs(self):
        sink = self.sink
        counts = []

        class Watcher(Collaborator):
            def initiate_watch(self):
                counts.append(len(sink.markers))

        self.make_engine(Watcher(participant_id="w")).run()
        self.assertEqual(counts, [1])
        self.assertEqual(sink.leftover_markers, [])

    def test_environment_failure_runs_nothing(self):
        provisioner = MagicMock()
        provisioner.provision.return_value = False
        isolator = EnvironmentIsolator(state=self.state, provisioner=provisioner)
        leader = Pairing(participant_id="a")

        with self.assertRaises(EnvironmentIsolationError):
            self.make_engine(leader, isolator=isolator).run()

        self.assertEqual(leader.calls, [])
        self.assertEqual(self.sink.assertions, [])
        self.assertFalse(leader.is_running)

    def test_unexpected_isolator_error_is_environment_error(self):
        isolator = MagicMock()
        isolator.acquire.side_effect = OSError("disk full")

        with self.assertRaises(EnvironmentIsolationError):
            self.make_engine(Pairing(participant_id="a"), isolator=isolator).run()
        isolator.release.assert_not_called()


class TestStructuralErrors(ExecutorTestCase):
    def test_no_initiators(self):
        leader = VerifyOnly(participant_id="v")
        engine = self.make_engine(leader)

        with self.assertRaises(StructuralError):
            engine.run()

        self.assertEqual(engine.current.state, RunState.FAILED)
        self.assertEqual(self.sink.markers, {})
        self.assertEqual(leader.calls, [])
        self.assertEqual(self.sink.assertions, [])
        self.assertIs(self.state.active, self.original)

    def test_only_the_leader_may_run(self):
        leader = Pairing(participant_id="a")
        other = PairingB(participant_id="b", leader=leader)

        with self.assertRaises(StructuralError):
            self.make_engine(other).run()
        with self.assertRaises(StructuralError):
            other.run(sink=self.sink, isolator=self.isolator)
        self.assertEqual(leader.calls, [])

    def test_nested_run_is_recorded_as_participant_error(self):
        class Recursive(Collaborator):
            def initiate_again(self):
                self.run()

        result = self.make_engine(Recursive(participant_id="r")).run()

        error = result.outcomes[0].errors[0]
        self.assertIsInstance(error.original, StructuralError)


if __name__ == "__main__":
    unittest.main()
