"""
Shared pytest fixtures for relstore tests.
Provides a connected adapter with a small blog schema for all test suites.
"""

import pytest
import pytest_asyncio
import tempfile
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from relstore import DatabaseAdapter
from relstore.config import Config
from relstore.fields import Checkbox, DateTime, Integer, Relationship, Text

# Keep test output quiet
import logging
logging.basicConfig(level=logging.CRITICAL)


def register_blog_lists(adapter):
    """
    Register the blog lists used across the suite.

    User.posts  <-> Post.author   1:N (FK on Post.author)
    User.profile <-> Profile.user 1:1 (FK on Profile.user)
    User.friends                  N:N one-sided, self-referencing
    Post.editor                   N:1 one-sided (FK on Post.editor)
    Post.tags   <-> Tag.posts     N:N
    """
    lists = {}
    lists['User'] = adapter.new_list_adapter('User', {
        'name': Text(is_required=True),
        'email': Text(),
        'posts': Relationship(ref='Post.author', many=True),
        'profile': Relationship(ref='Profile.user'),
        'friends': Relationship(ref='User', many=True),
    })
    lists['Post'] = adapter.new_list_adapter('Post', {
        'title': Text(),
        'views': Integer(default_value=0),
        'published': Checkbox(default_value=False),
        'published_at': DateTime(),
        'author': Relationship(ref='User.posts'),
        'editor': Relationship(ref='User'),
        'tags': Relationship(ref='Tag.posts', many=True),
    })
    lists['Tag'] = adapter.new_list_adapter('Tag', {
        'label': Text(is_unique=True),
        'posts': Relationship(ref='Post.tags', many=True),
    })
    lists['Profile'] = adapter.new_list_adapter('Profile', {
        'bio': Text(),
        'user': Relationship(ref='User.profile'),
    })
    return lists


# ============================================================================
# Adapter Fixtures
# ============================================================================

@pytest.fixture
def db_path():
    """Provide a path inside a throwaway directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield str(Path(tmpdir) / "test.db")


@pytest_asyncio.fixture
async def adapter(db_path):
    """Provide a connected DatabaseAdapter with the blog lists registered."""
    db = DatabaseAdapter(**Config.for_file(db_path, drop_database=True))
    register_blog_lists(db)
    await db.connect()
    yield db
    await db.disconnect()


@pytest.fixture
def users(adapter):
    return adapter.get_list_adapter_by_key('User')


@pytest.fixture
def posts(adapter):
    return adapter.get_list_adapter_by_key('Post')


@pytest.fixture
def tags(adapter):
    return adapter.get_list_adapter_by_key('Tag')


@pytest.fixture
def profiles(adapter):
    return adapter.get_list_adapter_by_key('Profile')


# ============================================================================
# Test Data Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def blog(users, posts, tags):
    """
    Provide a populated blog.

    ada: 'SQL basics' (10 views, db+python), 'SQL joins' (5 views, db)
    bob: 'Cooking' (3 views, no tags)
    cy:  no posts
    """
    ada = await users.create({'name': 'Ada', 'email': 'ada@example.com'})
    bob = await users.create({'name': 'Bob', 'email': 'BOB@example.com'})
    cy = await users.create({'name': 'Cy'})

    db_tag = await tags.create({'label': 'db'})
    py_tag = await tags.create({'label': 'python'})

    basics = await posts.create({
        'title': 'SQL basics', 'views': 10, 'published': True,
        'author': ada['id'], 'tags': [db_tag['id'], py_tag['id']],
    })
    joins = await posts.create({
        'title': 'SQL joins', 'views': 5,
        'author': ada['id'], 'tags': [db_tag['id']],
    })
    cooking = await posts.create({'title': 'Cooking', 'views': 3, 'author': bob['id']})

    return {
        'ada': ada, 'bob': bob, 'cy': cy,
        'db': db_tag, 'python': py_tag,
        'basics': basics, 'joins': joins, 'cooking': cooking,
    }
