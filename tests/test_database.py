"""
Tests for DuckDB storage and the DuckDB gateway.
"""

import os
import shutil
import tempfile
import unittest
from datetime import datetime

from blockwright.composition import CompositionEngine, SharedBlockDecision, SharedBlockPolicy
from blockwright.database import DatabaseManager, DuckDBGateway
from blockwright.errors import ConflictError, InvalidArgumentError, NotFoundError
from blockwright.models import BlockQuery, BlockTypeId
from blockwright.registry import build_default_registry


class TestDatabaseManager(unittest.TestCase):
    """Test database operations."""

    def setUp(self):
        """Set up test database."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        self.db = DatabaseManager(self.db_path)
        self.db.connect()
        self.db.initialize_database()

    def tearDown(self):
        """Clean up test database."""
        self.db.disconnect()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_block(self, block_type=BlockTypeId.SKILL, payload=None):
        return self.db.create_block_instance(block_type, payload or {"name": "Python"}, "user-1")

    def stored_order(self, document_id):
        return [(e.block_id, e.position) for e in self.db.list_document_blocks(document_id)]

    def test_block_round_trip(self):
        """Test creating, reading and updating a block."""
        created = self.db.create_block_instance(
            BlockTypeId.EXPERIENCE,
            {"company": "Acme", "highlights": ["Shipped it"]},
            "user-1",
            name="Acme"
        )

        fetched = self.db.get_block_instance(created.id)
        self.assertEqual(fetched.block_type, BlockTypeId.EXPERIENCE)
        self.assertEqual(fetched.payload, {"company": "Acme", "highlights": ["Shipped it"]})
        self.assertEqual(fetched.name, "Acme")

        updated = self.db.update_block_instance(created.id, {"company": "Acme Corp"})
        self.assertEqual(updated.payload, {"company": "Acme Corp"})
        self.assertGreaterEqual(updated.updated_at, created.updated_at)

    def test_missing_block(self):
        self.assertIsNone(self.db.get_block_instance("nope"))
        with self.assertRaises(NotFoundError):
            self.db.update_block_instance("nope", {})
        with self.assertRaises(NotFoundError):
            self.db.delete_block_instance("nope")

    def test_link_and_unlink_keep_positions_dense(self):
        a, b, c = self.make_block(), self.make_block(), self.make_block()

        self.db.link_block("doc1", a.id, 0)
        self.db.link_block("doc1", b.id, 1)
        self.db.link_block("doc1", c.id, 0)
        self.assertEqual(self.stored_order("doc1"), [(c.id, 0), (a.id, 1), (b.id, 2)])

        self.db.unlink_block("doc1", a.id)
        self.assertEqual(self.stored_order("doc1"), [(c.id, 0), (b.id, 1)])
        self.assertEqual(self.db.document_positions("doc1"), [0, 1])

    def test_reorder(self):
        blocks = [self.make_block() for _ in range(4)]
        for position, block in enumerate(blocks):
            self.db.link_block("doc1", block.id, position)

        self.db.reorder_block("doc1", blocks[0].id, 0, 2)
        self.assertEqual(
            [block_id for block_id, _ in self.stored_order("doc1")],
            [blocks[1].id, blocks[2].id, blocks[0].id, blocks[3].id]
        )

        self.db.reorder_block("doc1", blocks[3].id, 3, 0)
        self.assertEqual(
            [block_id for block_id, _ in self.stored_order("doc1")],
            [blocks[3].id, blocks[1].id, blocks[2].id, blocks[0].id]
        )
        self.assertEqual(self.db.document_positions("doc1"), [0, 1, 2, 3])

    def test_link_errors_roll_back(self):
        a, b = self.make_block(), self.make_block()
        self.db.link_block("doc1", a.id, 0)

        with self.assertRaises(ConflictError):
            self.db.link_block("doc1", a.id, 0)
        with self.assertRaises(InvalidArgumentError):
            self.db.link_block("doc1", b.id, 5)
        with self.assertRaises(ConflictError):
            self.db.reorder_block("doc1", a.id, 1, 0)
        with self.assertRaises(NotFoundError):
            self.db.unlink_block("doc1", b.id)

        self.assertEqual(self.stored_order("doc1"), [(a.id, 0)])

    def test_delete_referenced_block(self):
        block = self.make_block()
        self.db.link_block("doc1", block.id, 0)
        self.db.link_block("doc2", block.id, 0)

        self.assertEqual(self.db.count_documents_referencing(block.id), 2)
        with self.assertRaises(ConflictError):
            self.db.delete_block_instance(block.id)

        self.db.unlink_block("doc1", block.id)
        self.db.unlink_block("doc2", block.id)
        self.db.delete_block_instance(block.id)
        self.assertIsNone(self.db.get_block_instance(block.id))

    def test_duplicate_provenance(self):
        original = self.make_block()
        copy = self.db.create_block_instance(
            BlockTypeId.SKILL, {"name": "Python"}, "user-1", name="Python (Copy)", duplicated_from=original.id
        )

        fetched = self.db.get_block_instance(copy.id)
        self.assertEqual(fetched.duplicated_from, original.id)
        self.assertEqual(fetched.duplicated_at, copy.duplicated_at)
        self.assertIsNotNone(fetched.duplicated_at)

        plain = self.db.get_block_instance(original.id)
        self.assertIsNone(plain.duplicated_from)
        self.assertIsNone(plain.duplicated_at)

    def test_block_usage(self):
        block, unused = self.make_block(), self.make_block()
        self.db.link_block("doc2", block.id, 0)
        self.db.link_block("doc1", block.id, 0)

        usage = self.db.get_block_usage(block.id)
        self.assertEqual(usage.count, 2)
        self.assertEqual(usage.document_ids, ["doc1", "doc2"])
        self.assertEqual(self.db.get_block_usage(unused.id).document_ids, [])

    def test_requires_connection(self):
        db = DatabaseManager(os.path.join(self.temp_dir, "other.db"))
        with self.assertRaises(RuntimeError):
            db.get_block_instance("x")


class TestBlockLibrary(unittest.TestCase):
    """Test listing a user's block library."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db = DatabaseManager(os.path.join(self.temp_dir, "library.db"))
        self.db.connect()
        self.db.initialize_database()

        self.python = self.db.create_block_instance(
            BlockTypeId.SKILL, {"name": "Python", "category": "Languages"}, "user-1", name="Python"
        )
        self.award = self.db.create_block_instance(
            BlockTypeId.AWARD, {"title": "Top 100% uptime", "awarder": "Ops"}, "user-1", name="Prize"
        )
        self.norsk = self.db.create_block_instance(
            BlockTypeId.NATURAL_LANGUAGE, {"language": "Norwegian", "dialect": "west_coast"}, "user-1", name="Norsk"
        )
        self.db.create_block_instance(BlockTypeId.SKILL, {"name": "Python"}, "user-2", name="Python")

        for block, created in ((self.python, datetime(2024, 1, 1)),
                               (self.award, datetime(2024, 3, 1)),
                               (self.norsk, datetime(2024, 5, 1))):
            self.db.connection.execute(
                "UPDATE block_instances SET created_at = ? WHERE id = ?", [created, block.id]
            )

    def tearDown(self):
        self.db.disconnect()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def ids(self, query=None):
        return [block.id for block in self.db.list_blocks_by_user("user-1", query).blocks]

    def test_default_is_newest_first(self):
        page = self.db.list_blocks_by_user("user-1")

        self.assertEqual(page.total, 3)
        self.assertEqual([b.id for b in page.blocks], [self.norsk.id, self.award.id, self.python.id])
        self.assertEqual(page.blocks[0].payload, {"language": "Norwegian", "dialect": "west_coast"})

    def test_type_filter(self):
        query = BlockQuery(types=[BlockTypeId.SKILL, BlockTypeId.NATURAL_LANGUAGE])
        self.assertEqual(self.ids(query), [self.norsk.id, self.python.id])

    def test_search(self):
        """Search is case-insensitive over name and payload, with wildcards taken literally."""
        self.assertEqual(self.ids(BlockQuery(search="pYtHoN")), [self.python.id])
        self.assertEqual(self.ids(BlockQuery(search="languages")), [self.python.id])
        self.assertEqual(self.ids(BlockQuery(search="%")), [self.award.id])
        self.assertEqual(self.ids(BlockQuery(search="_")), [self.norsk.id])
        self.assertEqual(self.ids(BlockQuery(search="nothing like it")), [])

    def test_created_range(self):
        query = BlockQuery(created_after=datetime(2024, 3, 1), created_before=datetime(2024, 4, 1))
        self.assertEqual(self.ids(query), [self.award.id])

        query = BlockQuery(created_after=datetime(2024, 2, 1), order_direction="asc")
        self.assertEqual(self.ids(query), [self.award.id, self.norsk.id])

    def test_order_by_name(self):
        ascending = BlockQuery(order_by="name", order_direction="asc")
        descending = BlockQuery(order_by="name", order_direction="desc")

        self.assertEqual(self.ids(ascending), [self.norsk.id, self.award.id, self.python.id])
        self.assertEqual(self.ids(descending), [self.python.id, self.award.id, self.norsk.id])

    def test_paging(self):
        first = self.db.list_blocks_by_user("user-1", BlockQuery(order_by="name", order_direction="asc", limit=2, page=1))
        second = self.db.list_blocks_by_user("user-1", BlockQuery(order_by="name", order_direction="asc", limit=2, page=2))

        self.assertEqual([b.id for b in first.blocks], [self.norsk.id, self.award.id])
        self.assertEqual([b.id for b in second.blocks], [self.python.id])
        self.assertEqual((first.total, second.total), (3, 3))

    def test_unknown_owner(self):
        page = self.db.list_blocks_by_user("user-3")
        self.assertEqual((page.blocks, page.total), ([], 0))


class TestDuckDBGateway(unittest.IsolatedAsyncioTestCase):
    """Test the composition engine writing through to DuckDB."""

    async def asyncSetUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db = DatabaseManager(os.path.join(self.temp_dir, "engine.db"))
        self.db.connect()
        self.db.initialize_database()
        self.gateway = DuckDBGateway(self.db)
        self.registry = build_default_registry()

    async def asyncTearDown(self):
        self.db.disconnect()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_engine(self, decision=SharedBlockDecision.DUPLICATE):
        return CompositionEngine(
            self.registry,
            self.gateway,
            policy=SharedBlockPolicy(default_decision=decision.value),
            timeout=5.0
        )

    async def test_engine_state_matches_storage(self):
        engine = self.make_engine()
        ids = []
        for block_type in (BlockTypeId.CONTACT, BlockTypeId.EXPERIENCE, BlockTypeId.SKILL):
            block = await engine.create_block(block_type, "user-1")
            await engine.add("doc1", block.id, block_type)
            ids.append(block.id)

        await engine.move("doc1", ids[2], 0)
        await engine.remove("doc1", ids[1])

        expected = [(ids[2], 0), (ids[0], 1)]
        self.assertEqual([(b, p) for b, _, p in engine.list("doc1")], expected)

        # A fresh engine sees the same ordering from storage
        fresh = self.make_engine()
        entries = await fresh.load("doc1")
        self.assertEqual([(e.block_id, e.position) for e in entries], expected)
        self.assertEqual(entries[1].block_type, BlockTypeId.CONTACT)

    async def test_missing_block_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            await self.gateway.get_block_instance("nope")

    async def test_duplicate_edit_in_storage(self):
        engine = self.make_engine()
        block = await engine.create_block(
            BlockTypeId.NATURAL_LANGUAGE, "user-1", name="Norwegian",
            payload={"language": "Norwegian", "fluency": "native"}
        )
        await engine.add("doc1", block.id, BlockTypeId.NATURAL_LANGUAGE)
        await engine.add("doc2", block.id, BlockTypeId.NATURAL_LANGUAGE)

        outcome = await engine.edit("doc2", block.id, {"language": "Norwegian", "fluency": "professional"}, "user-1")

        self.assertEqual(outcome.decision, SharedBlockDecision.DUPLICATE)
        self.assertEqual(outcome.block.name, "Norwegian (Copy)")
        self.assertEqual(self.db.count_documents_referencing(block.id), 1)
        self.assertEqual(self.db.get_block_instance(block.id).payload["fluency"], "native")
        self.assertEqual(self.db.get_block_instance(outcome.block.id).payload["fluency"], "professional")
        self.assertEqual(self.db.get_block_instance(outcome.block.id).duplicated_from, block.id)

    async def test_library_through_engine(self):
        engine = self.make_engine()
        skill = await engine.create_block(BlockTypeId.SKILL, "user-1", name="Python", payload={
            "name": "Python", "category": "Languages"
        })
        await engine.create_block(BlockTypeId.CONTACT, "user-1", payload={"email": "ada@example.com"})
        await engine.add("doc1", skill.id, BlockTypeId.SKILL)

        page = await engine.list_user_blocks("user-1", BlockQuery(types=[BlockTypeId.SKILL]))
        self.assertEqual([b.id for b in page.blocks], [skill.id])
        self.assertEqual(page.total, 1)

        usage = await engine.block_usage(skill.id)
        self.assertEqual(usage.document_ids, ["doc1"])


if __name__ == '__main__':
    unittest.main(verbosity=2)
