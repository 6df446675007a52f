"""
Tests for editing blocks that several documents share.
"""

import unittest

from blockwright.composition import CompositionEngine, SharedBlockDecision, SharedBlockPolicy
from blockwright.database import InMemoryGateway
from blockwright.errors import (
    BlockValidationError,
    ConfigurationError,
    NotFoundError,
    UnauthorizedError,
)
from blockwright.models import BlockTypeId
from blockwright.registry import build_default_registry


OWNER = "user-1"

SKILL = {"name": "Python", "category": "Languages", "proficiency": "advanced", "yearsOfExperience": 5}
EDITED = {"name": "Python", "category": "Languages", "proficiency": "expert", "yearsOfExperience": 9}


class RecordingCallback:
    """Answers a fixed decision and remembers what it was asked."""

    def __init__(self, gateway, answer):
        self.gateway = gateway
        self.answer = answer
        self.asked = []
        self.updates_seen = None

    async def __call__(self, block_id, resume_count):
        self.asked.append((block_id, resume_count))
        self.updates_seen = [op for op, _ in self.gateway.calls if op == "update_block_instance"]
        return self.answer


class SharedBlockTestCase(unittest.IsolatedAsyncioTestCase):
    """Two documents sharing one skill block, each with a block of its own."""

    async def asyncSetUp(self):
        self.gateway = InMemoryGateway()
        self.registry = build_default_registry()

    async def make_engine(self, answer=None, default_decision="cancel"):
        callback = RecordingCallback(self.gateway, answer) if answer is not None else None
        policy = SharedBlockPolicy(decide=callback, default_decision=default_decision)
        engine = CompositionEngine(self.registry, self.gateway, policy=policy, timeout=1.0)

        shared = await engine.create_block(BlockTypeId.SKILL, OWNER, name="Python", payload=SKILL)
        own = await engine.create_block(BlockTypeId.SKILL, OWNER, payload={"name": "SQL", "category": "Data"})
        await engine.add("doc1", own.id, BlockTypeId.SKILL)
        await engine.add("doc1", shared.id, BlockTypeId.SKILL)
        await engine.add("doc2", shared.id, BlockTypeId.SKILL)

        self.shared_id = shared.id
        self.own_id = own.id
        return engine, callback


class TestSharedBlockDecisions(SharedBlockTestCase):

    async def test_policy_consulted_before_mutation(self):
        """The callback sees the reference count before any payload is written."""
        engine, callback = await self.make_engine(SharedBlockDecision.MODIFY)

        await engine.edit("doc1", self.shared_id, EDITED, OWNER)

        self.assertEqual(callback.asked, [(self.shared_id, 2)])
        self.assertEqual(callback.updates_seen, [])

    async def test_modify_changes_every_document(self):
        engine, _ = await self.make_engine("modify")

        outcome = await engine.edit("doc1", self.shared_id, EDITED, OWNER)

        self.assertEqual(outcome.decision, SharedBlockDecision.MODIFY)
        self.assertTrue(outcome.applied)
        self.assertEqual(outcome.resume_count, 2)
        self.assertEqual(outcome.block.id, self.shared_id)
        self.assertEqual(self.gateway.blocks[self.shared_id].payload, EDITED)
        self.assertIn((self.shared_id, 0), self.gateway.document_positions("doc2"))

    async def test_duplicate_replaces_link_in_place(self):
        engine, _ = await self.make_engine(SharedBlockDecision.DUPLICATE)

        outcome = await engine.edit("doc1", self.shared_id, EDITED, OWNER)
        copy_id = outcome.block.id

        self.assertNotEqual(copy_id, self.shared_id)
        self.assertEqual(outcome.block.name, "Python (Copy)")
        self.assertEqual(outcome.block.payload, EDITED)
        self.assertEqual(outcome.block.duplicated_from, self.shared_id)
        self.assertIsNotNone(outcome.block.duplicated_at)
        self.assertIsNone(self.gateway.blocks[self.shared_id].duplicated_from)

        # Same position in doc1, original still in doc2 and unchanged
        self.assertEqual(self.gateway.document_positions("doc1"), [(self.own_id, 0), (copy_id, 1)])
        self.assertEqual(self.gateway.document_positions("doc2"), [(self.shared_id, 0)])
        self.assertEqual(self.gateway.blocks[self.shared_id].payload, SKILL)

        listed = [(block_id, position) for block_id, _, position in engine.list("doc1")]
        self.assertEqual(listed, [(self.own_id, 0), (copy_id, 1)])
        self.assertFalse(engine.is_dirty("doc1"))

    async def test_cancel_changes_nothing(self):
        engine, callback = await self.make_engine(SharedBlockDecision.CANCEL)
        calls_before = list(self.gateway.calls)

        outcome = await engine.edit("doc1", self.shared_id, EDITED, OWNER)

        self.assertFalse(outcome.applied)
        self.assertIsNone(outcome.block)
        self.assertEqual(self.gateway.blocks[self.shared_id].payload, SKILL)
        new_ops = [op for op, _ in self.gateway.calls[len(calls_before):]]
        self.assertNotIn("update_block_instance", new_ops)
        self.assertNotIn("create_block_instance", new_ops)

    async def test_unshared_block_skips_callback(self):
        engine, callback = await self.make_engine(SharedBlockDecision.CANCEL)

        outcome = await engine.edit("doc1", self.own_id, {"name": "SQL", "category": "Databases"}, OWNER)

        self.assertEqual(outcome.decision, SharedBlockDecision.MODIFY)
        self.assertEqual(callback.asked, [])
        self.assertEqual(self.gateway.blocks[self.own_id].payload["category"], "Databases")

    async def test_default_decision_without_callback(self):
        engine, _ = await self.make_engine(default_decision="duplicate")

        with self.assertLogs(level="INFO") as logs:
            outcome = await engine.edit("doc1", self.shared_id, EDITED, OWNER)

        self.assertEqual(outcome.decision, SharedBlockDecision.DUPLICATE)
        self.assertTrue(any("default decision" in line for line in logs.output))


class TestRejectedEdits(SharedBlockTestCase):

    async def test_other_users_block(self):
        engine, callback = await self.make_engine(SharedBlockDecision.MODIFY)

        with self.assertRaises(UnauthorizedError):
            await engine.edit("doc1", self.shared_id, EDITED, "user-2")
        self.assertEqual(callback.asked, [])

    async def test_invalid_payload(self):
        engine, callback = await self.make_engine(SharedBlockDecision.MODIFY)

        with self.assertRaises(BlockValidationError) as ctx:
            await engine.edit("doc1", self.shared_id, {"name": "", "category": "Languages"}, OWNER)

        self.assertEqual(ctx.exception.errors, ["name: Skill name is required"])
        self.assertEqual(callback.asked, [])
        self.assertEqual(self.gateway.blocks[self.shared_id].payload, SKILL)

    async def test_block_not_in_document(self):
        engine, _ = await self.make_engine(SharedBlockDecision.MODIFY)

        with self.assertRaises(NotFoundError):
            await engine.edit("doc2", self.own_id, EDITED, OWNER)

    async def test_unknown_callback_answer(self):
        engine, _ = await self.make_engine("overwrite")

        with self.assertRaises(ConfigurationError):
            await engine.edit("doc1", self.shared_id, EDITED, OWNER)


class TestSharedBlockPolicy(unittest.IsolatedAsyncioTestCase):
    """Test the policy on its own."""

    async def test_single_reference_always_modifies(self):
        policy = SharedBlockPolicy(default_decision="cancel")

        self.assertEqual(await policy.decide("block-1", 0), SharedBlockDecision.MODIFY)
        self.assertEqual(await policy.decide("block-1", 1), SharedBlockDecision.MODIFY)
        self.assertEqual(await policy.decide("block-1", 2), SharedBlockDecision.CANCEL)

    def test_invalid_default_decision(self):
        with self.assertRaises(ValueError):
            SharedBlockPolicy(default_decision="maybe")


if __name__ == '__main__':
    unittest.main(verbosity=2)
