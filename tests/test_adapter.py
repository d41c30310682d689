#!/usr/bin/env python3
"""
Tests for DatabaseAdapter connection, wiring and teardown.
"""

import asyncio
import os
import sqlite3
import tempfile
from pathlib import Path

import pytest

from conftest import register_blog_lists
from relstore import DatabaseAdapter
from relstore.config import Config
from relstore.exceptions import ConfigurationError, ConnectionError, StorageError
from relstore.fields import Text


async def table_names(adapter):
    cursor = await adapter.get_connection().execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
    )
    return sorted(row['name'] for row in await cursor.fetchall())


async def foreign_keys(adapter, table):
    cursor = await adapter.get_connection().execute(f'PRAGMA foreign_key_list("{table}")')
    return {row['from']: row['table'] for row in await cursor.fetchall()}


async def connect_blog(db_path, **kwargs):
    adapter = DatabaseAdapter(**{**Config.for_file(db_path), **kwargs})
    register_blog_lists(adapter)
    await adapter.connect()
    return adapter


class TestWiring:
    """Test the tables and constraints created on connect."""

    @pytest.mark.asyncio
    async def test_tables_created(self, adapter):
        assert await table_names(adapter) == [
            'Post', 'Post_tags_Tag_posts', 'Profile', 'Tag', 'User', 'User_friends_many',
        ]

    @pytest.mark.asyncio
    async def test_foreign_keys_follow_cardinality(self, adapter):
        assert await foreign_keys(adapter, 'Post') == {'author': 'User', 'editor': 'User'}
        assert await foreign_keys(adapter, 'Profile') == {'user': 'User'}
        assert await foreign_keys(adapter, 'User') == {}
        assert await foreign_keys(adapter, 'User_friends_many') == {
            'User_left_id': 'User', 'User_right_id': 'User',
        }

    @pytest.mark.asyncio
    async def test_foreign_keys_enforced(self, posts):
        with pytest.raises(sqlite3.IntegrityError):
            await posts.create({'title': 'Ghost', 'author': 999})
        assert await posts.query(meta=True) == {'count': 0}

    @pytest.mark.asyncio
    async def test_custom_table_name(self, db_path):
        adapter = DatabaseAdapter(**Config.for_file(db_path, drop_database=True))
        notes = adapter.new_list_adapter('Note', {'body': Text()}, table_name='notes')
        async with await adapter.connect():
            note = await notes.create({'body': 'hi'})
            assert await table_names(adapter) == ['notes']
            assert (await notes.find_by_id(note['id']))['body'] == 'hi'


class TestRegistry:

    def test_duplicate_list(self):
        adapter = DatabaseAdapter(**Config.for_memory())
        adapter.new_list_adapter('User', {'name': Text()})
        with pytest.raises(ConfigurationError, match="already registered"):
            adapter.new_list_adapter('User', {'name': Text()})

    def test_unknown_list(self):
        adapter = DatabaseAdapter(**Config.for_memory())
        with pytest.raises(ConfigurationError, match="Unknown list 'User'"):
            adapter.get_list_adapter_by_key('User')

    @pytest.mark.asyncio
    async def test_no_registration_after_connect(self, adapter):
        with pytest.raises(ConfigurationError):
            adapter.new_list_adapter('Late', {'name': Text()})

    @pytest.mark.asyncio
    async def test_not_connected(self):
        adapter = DatabaseAdapter(**Config.for_memory())
        users = adapter.new_list_adapter('User', {'name': Text()})
        with pytest.raises(StorageError, match="not connected"):
            await users.find_all()


class TestConnection:
    """Test connecting, reconnecting and dropping."""

    @pytest.mark.asyncio
    async def test_in_memory(self):
        adapter = DatabaseAdapter(**Config.for_memory())
        users = adapter.new_list_adapter('User', {'name': Text()})
        async with await adapter.connect():
            await users.create({'name': 'Ada'})
            assert len(await users.find_all()) == 1
        assert adapter.conn is None

    @pytest.mark.asyncio
    async def test_data_survives_reconnect(self, db_path):
        adapter = await connect_blog(db_path)
        await adapter.get_list_adapter_by_key('User').create({'name': 'Ada'})
        await adapter.disconnect()

        adapter = await connect_blog(db_path)
        try:
            assert len(await adapter.get_list_adapter_by_key('User').find_all()) == 1
        finally:
            await adapter.disconnect()

    @pytest.mark.asyncio
    async def test_drop_database(self, db_path):
        adapter = await connect_blog(db_path)
        await adapter.get_list_adapter_by_key('User').create({'name': 'Ada'})
        await adapter.disconnect()

        adapter = await connect_blog(db_path, drop_database=True)
        try:
            assert await adapter.get_list_adapter_by_key('User').find_all() == []
        finally:
            await adapter.disconnect()

    @pytest.mark.asyncio
    async def test_drop_ignored_in_production(self, db_path):
        adapter = await connect_blog(db_path)
        await adapter.get_list_adapter_by_key('User').create({'name': 'Ada'})
        await adapter.disconnect()

        adapter = await connect_blog(db_path, drop_database=True, environment='production')
        try:
            assert len(await adapter.get_list_adapter_by_key('User').find_all()) == 1
        finally:
            await adapter.disconnect()

    @pytest.mark.asyncio
    async def test_connection_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            missing = str(Path(tmpdir) / "missing" / "app.db")
            adapter = DatabaseAdapter(db_path=missing)
            with pytest.raises(ConnectionError) as exc_info:
                await adapter.connect()
            assert exc_info.value.db_name == 'app.db'
            assert exc_info.value.__cause__ is not None
            assert adapter.conn is None

    @pytest.mark.asyncio
    async def test_path_derived_from_name(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        adapter = DatabaseAdapter()
        adapter.new_list_adapter('User', {'name': Text()})
        async with await adapter.connect('My Blog!'):
            assert adapter.db_path == 'my_blog.db'
        assert os.path.exists(tmp_path / 'my_blog.db')

    @pytest.mark.asyncio
    async def test_non_ascii_name_slugified(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        adapter = DatabaseAdapter()
        adapter.new_list_adapter('User', {'name': Text()})
        async with await adapter.connect('Café  Society'):
            assert adapter.db_path == 'cafe_society.db'

    @pytest.mark.asyncio
    async def test_blank_name_uses_default(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        adapter = DatabaseAdapter()
        adapter.new_list_adapter('User', {'name': Text()})
        async with await adapter.connect('!!'):
            assert adapter.db_path == 'relstore.db'

    def test_write_lock_created_on_connect(self, db_path):
        """An adapter built outside any event loop serializes writers in the loop it runs in."""
        adapter = DatabaseAdapter(db_path=db_path)
        users = adapter.new_list_adapter('User', {'name': Text()})
        assert adapter.write_lock is None

        async def run():
            async with await adapter.connect():
                await asyncio.gather(*(users.create({'name': f'user{i}'}) for i in range(5)))
                return await users.query(meta=True)

        assert asyncio.run(run()) == {'count': 5}
        assert isinstance(adapter.write_lock, asyncio.Lock)
