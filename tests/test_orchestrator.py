#!/usr/bin/env python3
"""
Tests for the judge and the evaluation orchestrator.

Covers:
  - judge prompt framing (transcript labels, checkpoint notes, few-shot)
  - judge_safely failure sentinel
  - checkpoint fan-out and final/intermediate filing
  - failure isolation (one judge call, one scenario, a scenario without turns)
  - concurrent judge calls per checkpoint, joined before the next checkpoint
  - chunked and concurrent batches giving the same results
  - the tutor end-to-end scenario

Usage:
    python3 -m unittest tests.test_orchestrator -v
"""

import asyncio
import unittest

from eval_wizard.errors import GatewayError, PreconditionError
from eval_wizard.executor import ConversationExecutor
from eval_wizard.gateway import ModelBackend, ModelGateway
from eval_wizard.judge import JUDGE_ERROR_REASONING, ConversationJudge
from eval_wizard.models import (
    CheckpointKind,
    Criterion,
    GradedExample,
    Message,
    Scenario,
    Turn,
    Verdict,
)
from eval_wizard.orchestrator import EvaluationOrchestrator, iter_chunks
from eval_wizard.parsing import UNPARSEABLE_VERDICT_REASONING

from tests.fakes import FAIL_REPLY, PASS_REPLY, echo_subject, fake_backend, run_async

TUTOR_PROMPT = "You are a tutor. Never give direct answers."

PEDAGOGY = Criterion(
    id="pedagogically-sound",
    name="Pedagogically Sound",
    description="Doesn't give away answers inappropriately; encourages learning through guidance",
)
SUPPORTIVE = Criterion(id="supportive", name="Supportive & Encouraging", description="Positive tone")
ACCURATE = Criterion(id="accurate", name="Factually Accurate", description="No factual errors")


def scenario(scenario_id, *contents, checkpoints=()):
    return Scenario(
        id=scenario_id,
        turns=tuple(Turn(c, checkpoint=i in checkpoints) for i, c in enumerate(contents)),
    )


def criterion_in(prompt):
    for c in (PEDAGOGY, SUPPORTIVE, ACCURATE):
        if f'criterion "{c.name}"' in prompt:
            return c.id
    return None


class CheckpointBarrierGateway(ModelGateway):
    """
    Judge gateway that holds each call until ``width`` calls are in flight.

    Calls are grouped in arrival order, ``width`` per group. A judge that
    awaited its calls one at a time would never fill a group and time out.
    """

    def __init__(self, width: int):
        self.width = width
        self.started = 0
        self.log = []
        self._released = {}

    async def complete(self, messages, model, temperature=0.0, system_prompt=None):
        group = self.started // self.width
        self.started += 1
        self.log.append(("start", group))
        event = self._released.setdefault(group, asyncio.Event())
        if self.started % self.width == 0:
            event.set()
        await asyncio.wait_for(event.wait(), timeout=1.0)
        self.log.append(("end", group))
        return PASS_REPLY


class TestConversationJudge(unittest.TestCase):

    def setUp(self):
        self.transcript = [
            Message("user", "What's 2+2?"),
            Message("assistant", "What do you get if you count two and two more?"),
        ]

    def test_prompt_framing(self):
        backend = fake_backend()
        judge = ConversationJudge(backend)
        run_async(judge.judge(self.transcript, PEDAGOGY, CheckpointKind.INTERMEDIATE))

        call = backend.gateway.calls[0]
        prompt = call["messages"][0]["content"]
        self.assertEqual(call["temperature"], 0.0)
        self.assertIn("Student: What's 2+2?", prompt)
        self.assertIn("AI: What do you get", prompt)
        self.assertIn("may continue", prompt)
        self.assertIn("Pedagogically Sound", prompt)
        self.assertNotIn("Training Examples", prompt)

    def test_final_framing_and_few_shot(self):
        backend = fake_backend()
        judge = ConversationJudge(backend)
        example = GradedExample(
            id="g1",
            project_id="p1",
            transcript=tuple(self.transcript),
            verdict=Verdict(passed=True, reasoning="Great use of guiding questions"),
        )
        run_async(judge.judge(self.transcript, PEDAGOGY, CheckpointKind.FINAL, [example]))

        prompt = backend.gateway.calls[0]["messages"][0]["content"]
        self.assertIn("complete conversation", prompt)
        self.assertIn("Training Examples", prompt)
        self.assertIn("Great use of guiding questions", prompt)

    def test_unparseable_reply_is_a_failing_verdict(self):
        judge = ConversationJudge(fake_backend(lambda m, s: "Looks good to me!"))
        verdict = run_async(judge.judge(self.transcript, PEDAGOGY))
        self.assertFalse(verdict.passed)
        self.assertEqual(verdict.reasoning, UNPARSEABLE_VERDICT_REASONING)

    def test_judge_propagates_and_judge_safely_converts(self):
        judge = ConversationJudge(fake_backend(lambda m, s: GatewayError("401 unauthorized", status_code=401)))
        with self.assertRaises(GatewayError):
            run_async(judge.judge(self.transcript, PEDAGOGY))
        verdict = run_async(judge.judge_safely(self.transcript, PEDAGOGY))
        self.assertEqual(verdict, Verdict(passed=False, reasoning=JUDGE_ERROR_REASONING))

    def test_single_response(self):
        backend = fake_backend(lambda m, s: FAIL_REPLY)
        judge = ConversationJudge(backend)
        verdict = run_async(judge.judge_single_response("What's 2+2?", "4", PEDAGOGY))
        self.assertFalse(verdict.passed)
        self.assertIn("Student Query: What's 2+2?", backend.gateway.calls[0]["messages"][0]["content"])


class TestEvaluationOrchestrator(unittest.TestCase):

    def make(self, judge_handler=None, subject_handler=echo_subject, **kwargs):
        self.subject = fake_backend(subject_handler)
        self.judge_backend = fake_backend(judge_handler or (lambda m, s: PASS_REPLY))
        return EvaluationOrchestrator(
            ConversationExecutor(self.subject),
            ConversationJudge(self.judge_backend),
            **kwargs,
        )

    def test_tutor_end_to_end(self):
        orchestrator = self.make()
        tutor = scenario("s1", "What's 2+2?", "Why is it 4?", checkpoints=(1,))

        [result] = run_async(orchestrator.run_batch(TUTOR_PROMPT, [tutor], [PEDAGOGY]))

        self.assertEqual(result.scenario_id, "s1")
        self.assertEqual(len(result.transcript), 4)
        self.assertEqual(result.checkpoint_evaluations, [])
        self.assertEqual(len(result.final_evaluations), 1)
        final = result.final_evaluations[0]
        self.assertEqual(final.after_turn_index, 1)
        self.assertEqual(final.criterion_id, "pedagogically-sound")
        self.assertEqual(final.kind, CheckpointKind.FINAL)
        self.assertIsInstance(final.passed, bool)
        self.assertTrue(final.reasoning)
        self.assertTrue(all(c["system_prompt"] == TUTOR_PROMPT for c in self.subject.gateway.calls))

    def test_intermediate_checkpoints_see_only_their_prefix(self):
        orchestrator = self.make()
        three_turns = scenario("s1", "a", "b", "c", checkpoints=(0,))

        [result] = run_async(orchestrator.run_batch(TUTOR_PROMPT, [three_turns], [PEDAGOGY, SUPPORTIVE]))

        self.assertEqual([e.after_turn_index for e in result.checkpoint_evaluations], [0, 0])
        self.assertEqual([e.criterion_id for e in result.checkpoint_evaluations], ["pedagogically-sound", "supportive"])
        self.assertTrue(all(e.kind == CheckpointKind.INTERMEDIATE for e in result.checkpoint_evaluations))
        self.assertEqual([e.after_turn_index for e in result.final_evaluations], [2, 2])

        prompts = [c["messages"][0]["content"] for c in self.judge_backend.gateway.calls]
        self.assertEqual(len(prompts), 4)
        # First checkpoint: only turn 0 is visible to the judge
        self.assertNotIn("Student: b", prompts[0])
        self.assertIn("Student: c", prompts[3])

    def test_one_failing_judge_call_is_isolated(self):
        def judge_handler(messages, system_prompt):
            prompt = messages[0]["content"]
            if "Student: beta" in prompt and criterion_in(prompt) == "supportive":
                return GatewayError("rate limited", status_code=429)
            return PASS_REPLY

        orchestrator = self.make(judge_handler)
        scenarios = [scenario("alpha", "alpha"), scenario("beta", "beta"), scenario("gamma", "gamma")]

        results = run_async(orchestrator.run_batch(TUTOR_PROMPT, scenarios, [PEDAGOGY, SUPPORTIVE, ACCURATE]))

        self.assertEqual([r.scenario_id for r in results], ["alpha", "beta", "gamma"])
        verdicts = [(r.scenario_id, e.criterion_id, e.verdict) for r in results for e in r.final_evaluations]
        self.assertEqual(len(verdicts), 9)
        failures = [v for v in verdicts if not v[2].passed]
        self.assertEqual(failures, [("beta", "supportive", Verdict(False, JUDGE_ERROR_REASONING))])

    def test_failing_scenario_gets_a_degenerate_result(self):
        def subject(messages, system_prompt):
            if messages[-1]["content"] == "boom":
                return GatewayError("connection reset")
            return "fine"

        orchestrator = self.make(subject_handler=subject)
        scenarios = [scenario("ok", "hello"), scenario("bad", "hi", "boom", "bye", checkpoints=(0,))]

        ok, bad = run_async(orchestrator.run_batch(TUTOR_PROMPT, scenarios, [PEDAGOGY, SUPPORTIVE]))

        self.assertFalse(ok.failed)
        self.assertTrue(all(e.passed for e in ok.final_evaluations))

        self.assertTrue(bad.failed)
        self.assertEqual(bad.transcript, [])
        self.assertEqual(bad.checkpoint_evaluations, [])
        self.assertEqual([e.criterion_id for e in bad.final_evaluations], ["pedagogically-sound", "supportive"])
        for evaluation in bad.final_evaluations:
            self.assertFalse(evaluation.passed)
            self.assertEqual(evaluation.after_turn_index, 2)
            self.assertEqual(evaluation.reasoning, "Error testing AI: connection reset")

    def test_scenario_without_turns_gets_a_failing_verdict_per_criterion(self):
        orchestrator = self.make()
        empty = Scenario(id="empty", turns=())

        [result] = run_async(orchestrator.run_batch(TUTOR_PROMPT, [empty], [PEDAGOGY, SUPPORTIVE]))

        self.assertTrue(result.failed)
        self.assertEqual(result.error, "Scenario has no turns")
        self.assertEqual([e.criterion_id for e in result.final_evaluations], ["pedagogically-sound", "supportive"])
        self.assertTrue(all(not e.passed and e.kind == CheckpointKind.FINAL for e in result.final_evaluations))
        self.assertEqual(self.subject.gateway.calls, [])
        self.assertEqual(self.judge_backend.gateway.calls, [])

    def test_checkpoint_judge_calls_run_together_and_join_before_the_next(self):
        criteria = [PEDAGOGY, SUPPORTIVE, ACCURATE]
        gateway = CheckpointBarrierGateway(width=len(criteria))
        orchestrator = EvaluationOrchestrator(
            ConversationExecutor(fake_backend(echo_subject)),
            ConversationJudge(ModelBackend(gateway=gateway, model="judge")),
        )
        three_turns = scenario("s1", "a", "b", "c", checkpoints=(0, 1))

        [result] = run_async(orchestrator.run_batch(TUTOR_PROMPT, [three_turns], criteria))

        expected = []
        for checkpoint in range(3):
            expected += [("start", checkpoint)] * 3 + [("end", checkpoint)] * 3
        self.assertEqual(gateway.log, expected)
        self.assertTrue(all(e.passed for e in (*result.checkpoint_evaluations, *result.final_evaluations)))

    def test_preconditions(self):
        orchestrator = self.make()
        with self.assertRaises(PreconditionError):
            run_async(orchestrator.run_batch(TUTOR_PROMPT, [], [PEDAGOGY]))
        with self.assertRaises(PreconditionError):
            run_async(orchestrator.run_batch(TUTOR_PROMPT, [scenario("s", "a")], []))

    def test_chunked_and_concurrent_runs_match_a_single_batch(self):
        scenarios = [scenario(f"s{i}", f"question {i}", "follow up", checkpoints=(0,)) for i in range(5)]

        def judge_handler(messages, system_prompt):
            # Deterministic per prompt: even-numbered questions pass
            prompt = messages[0]["content"]
            for i in range(5):
                if f"question {i}" in prompt:
                    return PASS_REPLY if i % 2 == 0 else FAIL_REPLY
            return FAIL_REPLY

        def flatten(results):
            return [(r.scenario_id, e.criterion_id, e.after_turn_index, e.passed)
                    for r in results for e in (*r.checkpoint_evaluations, *r.final_evaluations)]

        single = run_async(self.make(judge_handler).run_batch(TUTOR_PROMPT, scenarios, [PEDAGOGY, ACCURATE]))

        chunked = []
        orchestrator = self.make(judge_handler)
        for chunk in iter_chunks(scenarios, 2):
            chunked.extend(run_async(orchestrator.run_batch(TUTOR_PROMPT, chunk, [PEDAGOGY, ACCURATE])))

        concurrent = run_async(
            self.make(judge_handler, max_concurrent_scenarios=3).run_batch(TUTOR_PROMPT, scenarios, [PEDAGOGY, ACCURATE])
        )

        self.assertEqual(flatten(single), flatten(chunked))
        self.assertEqual(flatten(single), flatten(concurrent))
        self.assertEqual(len(flatten(single)), 5 * 2 * 2)

    def test_few_shot_examples_reach_every_judge_call(self):
        orchestrator = self.make()
        example = GradedExample(
            id="g1",
            project_id="p1",
            transcript=(Message("user", "hi"), Message("assistant", "hello")),
            verdict=Verdict(passed=False, reasoning="Too terse for a young learner"),
        )
        run_async(orchestrator.run_batch(
            TUTOR_PROMPT, [scenario("s1", "a", "b", checkpoints=(0,))], [PEDAGOGY], few_shot_examples=[example]
        ))
        prompts = [c["messages"][0]["content"] for c in self.judge_backend.gateway.calls]
        self.assertEqual(len(prompts), 2)
        self.assertTrue(all("Too terse for a young learner" in p for p in prompts))


class TestIterChunks(unittest.TestCase):

    def test_chunks(self):
        self.assertEqual(list(iter_chunks([1, 2, 3, 4, 5], 2)), [[1, 2], [3, 4], [5]])
        self.assertEqual(list(iter_chunks([], 3)), [])

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            list(iter_chunks([1], 0))


if __name__ == "__main__":
    unittest.main()
