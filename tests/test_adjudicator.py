"""
Tests del adjudicador externo con adjudicadores falsos (sin red)
"""
import asyncio
import os
import sys
import unittest
from pathlib import Path
from unittest import mock

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from matcher.adjudicator import (
    AdjudicatingMatcher,
    AdjudicationCache,
    AdjudicationError,
    AdjudicationReply,
    AdjudicatorSettings,
    ComparisonRequest,
    GeminiAdjudicator,
    parse_reply,
)
from matcher.field_matcher import FieldMatcher, MatchConfidence, MatchOutcome, MatchResult


class FakeAdjudicator:
    """Responde siempre lo mismo y cuenta llamadas / concurrencia."""

    def __init__(self, reply=None, delay=0.0):
        self.reply = reply or AdjudicationReply(match=True, confidence="high", reasoning="misma forma", similarity=0.9)
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def adjudicate(self, value1, value2, field_name):
        self.calls.append((field_name, value1, value2))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return self.reply
        finally:
            self.in_flight -= 1


class FailingAdjudicator:
    async def adjudicate(self, value1, value2, field_name):
        raise ConnectionError("sin red")


class TestAdjudicatingMatcher(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.matcher = FieldMatcher()

    def run_compare(self, adjudicating, v1, v2, field_name):
        return asyncio.run(adjudicating.compare(v1, v2, field_name))

    def test_without_adjudicator_equals_sync(self):
        adjudicating = AdjudicatingMatcher(matcher=self.matcher)
        answer = self.run_compare(adjudicating, "CG 2010", "CG 2026", "Form Number")
        self.assertEqual(answer.source, "rule-based")
        self.assertEqual(answer.result, self.matcher.compare("CG 2010", "CG 2026"))

    def test_confident_pair_not_sent(self):
        fake = FakeAdjudicator()
        adjudicating = AdjudicatingMatcher(fake, self.matcher)
        answer = self.run_compare(adjudicating, "GL", "CGL", "Coverage Type")
        self.assertEqual(answer.source, "rule-based")
        self.assertEqual(answer.result.confidence, MatchConfidence.SYNONYM)
        self.assertEqual(fake.calls, [])

    def test_high_match_sent_only_for_critical_fields(self):
        fake = FakeAdjudicator()
        adjudicating = AdjudicatingMatcher(fake, self.matcher)
        self.assertEqual(self.run_compare(adjudicating, "ABC-123", "ABC 123", "Notes").source, "rule-based")
        self.assertEqual(self.run_compare(adjudicating, "ABC-123", "ABC 123", "Policy Number").source, "adjudicator")
        self.assertEqual(len(fake.calls), 1)

    def test_ambiguous_pair_adjudicated(self):
        fake = FakeAdjudicator()
        adjudicating = AdjudicatingMatcher(fake, self.matcher)
        answer = self.run_compare(adjudicating, "CG 2010", "CG 2026", "Form Number")
        self.assertEqual(answer.source, "adjudicator")
        self.assertEqual(answer.result.outcome, MatchOutcome.MATCH)
        self.assertEqual(answer.result.confidence, MatchConfidence.HIGH)
        self.assertEqual(answer.result.similarity, 0.9)

    def test_dict_reply_is_validated(self):
        fake = FakeAdjudicator(reply={"match": "ambiguous", "confidence": "ambiguous", "similarity": 0.6})
        adjudicating = AdjudicatingMatcher(fake, self.matcher)
        answer = self.run_compare(adjudicating, "CG 2010", "CG 2026", "Form Number")
        self.assertEqual(answer.result.outcome, MatchOutcome.AMBIGUOUS)

    def test_invalid_reply_falls_back(self):
        fake = FakeAdjudicator(reply={"match": "maybe"})
        adjudicating = AdjudicatingMatcher(fake, self.matcher)
        with self.assertLogs(level="WARNING"):
            answer = self.run_compare(adjudicating, "CG 2010", "CG 2026", "Form Number")
        self.assertEqual(answer.source, "rule-based")

    def test_failure_falls_back_to_local_result(self):
        adjudicating = AdjudicatingMatcher(FailingAdjudicator(), self.matcher)
        with self.assertLogs(level="WARNING"):
            answer = self.run_compare(adjudicating, "CG 2010", "CG 2026", "Form Number")
        self.assertEqual(answer.source, "rule-based")
        self.assertEqual(answer.result, self.matcher.compare("CG 2010", "CG 2026"))

    def test_timeout_falls_back(self):
        settings = AdjudicatorSettings(timeout=0.01)
        adjudicating = AdjudicatingMatcher(FakeAdjudicator(delay=1.0), self.matcher, settings=settings)
        with self.assertLogs(level="WARNING"):
            answer = self.run_compare(adjudicating, "CG 2010", "CG 2026", "Form Number")
        self.assertEqual(answer.source, "rule-based")

    def test_cache(self):
        fake = FakeAdjudicator()
        cache = AdjudicationCache()
        adjudicating = AdjudicatingMatcher(fake, self.matcher, cache)
        first = self.run_compare(adjudicating, "CG 2010", "CG 2026", "Form Number")
        second = self.run_compare(adjudicating, "CG 2010", "CG 2026", "Form Number")
        self.assertEqual(first, second)
        self.assertEqual(len(fake.calls), 1)
        self.assertEqual(len(cache), 1)

    def test_batch_preserves_order_and_bounds_concurrency(self):
        fake = FakeAdjudicator(delay=0.01)
        settings = AdjudicatorSettings(batch_size=2, batch_delay=0.0)
        adjudicating = AdjudicatingMatcher(fake, self.matcher, settings=settings)
        requests = [
            ComparisonRequest("CG 2010", "CG 2026", "Form 1"),
            ComparisonRequest("GL", "CGL", "Coverage Type"),
            ComparisonRequest("CG 2011", "CG 2027", "Form 2"),
            ComparisonRequest("CG 2012", "CG 2028", "Form 3"),
            ComparisonRequest("Acme", "Acme", "Named Insured"),
            ComparisonRequest("CG 2013", "CG 2029", "Form 4"),
            ComparisonRequest("CG 2014", "CG 2020", "Form 5"),
        ]
        answers = asyncio.run(adjudicating.compare_batch(requests))
        self.assertEqual(len(answers), len(requests))
        self.assertEqual([a.source for a in answers],
                         ["adjudicator", "rule-based", "adjudicator", "adjudicator",
                          "rule-based", "adjudicator", "adjudicator"])
        self.assertEqual([c[0] for c in fake.calls], ["Form 1", "Form 2", "Form 3", "Form 4", "Form 5"])
        self.assertLessEqual(fake.max_in_flight, 2)

    def test_batch_without_adjudicator(self):
        adjudicating = AdjudicatingMatcher(matcher=self.matcher)
        answers = asyncio.run(adjudicating.compare_batch([ComparisonRequest("CG 2010", "CG 2026", "Form")]))
        self.assertEqual(answers[0].source, "rule-based")


class TestAdjudicationCache(unittest.TestCase):

    def test_lru_eviction(self):
        cache = AdjudicationCache(max_size=2)
        result = MatchResult(MatchOutcome.MATCH, MatchConfidence.HIGH, 0.9)
        cache.put(("f", "a", "b"), result)
        cache.put(("f", "c", "d"), result)
        cache.get(("f", "a", "b"))
        cache.put(("f", "e", "f"), result)
        self.assertEqual(len(cache), 2)
        self.assertIsNotNone(cache.get(("f", "a", "b")))
        self.assertIsNone(cache.get(("f", "c", "d")))
        cache.clear()
        self.assertEqual(len(cache), 0)


class TestParseReply(unittest.TestCase):

    def test_json_inside_text(self):
        reply = parse_reply('Resultado: {"match": true, "confidence": "exact", "reasoning": "igual", "similarity": 0.97} fin')
        self.assertIs(reply.match, True)
        result = reply.to_match_result()
        self.assertEqual(result.confidence, MatchConfidence.EXACT)
        self.assertIn("igual", result.reason)

    def test_braces_inside_reasoning(self):
        reply = parse_reply('{"match": true, "confidence": "high", "reasoning": "forma {CG 20 10} equivalente", "similarity": 0.9} ok')
        self.assertIs(reply.match, True)
        self.assertEqual(reply.reasoning, "forma {CG 20 10} equivalente")

    def test_negative_reply(self):
        result = parse_reply('{"match": false, "confidence": "high", "reasoning": "otro formulario", "similarity": 0.2}').to_match_result()
        self.assertEqual(result.outcome, MatchOutcome.DIFFERENT)

    def test_unusable_replies(self):
        for text in (None, "", "   ", "no json here", '{"match": true, "similarity": 1.5}', '{"match": '):
            with self.assertRaises(AdjudicationError):
                parse_reply(text)


class TestSettings(unittest.TestCase):

    def test_defaults(self):
        settings = AdjudicatorSettings()
        self.assertEqual(settings.model, "gemini-2.5-pro")
        self.assertEqual(settings.batch_size, 5)
        self.assertAlmostEqual(settings.batch_delay, 0.2)

    def test_from_env(self):
        env = {"GEMINI_API_KEY": "clave", "GEMINI_MODEL": "gemini-2.5-flash",
               "GEMINI_BATCH_SIZE": "3", "GEMINI_BATCH_DELAY_MS": "50", "GEMINI_TIMEOUT_S": "5"}
        with mock.patch.dict(os.environ, env, clear=True):
            settings = AdjudicatorSettings.from_env()
        self.assertEqual(settings.api_key, "clave")
        self.assertEqual(settings.model, "gemini-2.5-flash")
        self.assertEqual(settings.batch_size, 3)
        self.assertAlmostEqual(settings.batch_delay, 0.05)
        self.assertEqual(settings.timeout, 5.0)

    def test_from_env_invalid_number(self):
        with mock.patch.dict(os.environ, {"GEMINI_BATCH_SIZE": "muchos"}, clear=True):
            with self.assertLogs(level="WARNING"):
                settings = AdjudicatorSettings.from_env()
        self.assertEqual(settings.batch_size, 5)
        self.assertIsNone(settings.api_key)

    def test_gemini_requires_api_key(self):
        with self.assertRaises((RuntimeError, ValueError)):
            GeminiAdjudicator(AdjudicatorSettings(api_key=None))
