"""Database fixtures for preload_counts tests (shared)."""

import pytest
from datetime import datetime, timezone, timedelta
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Post, Article, Comment, Vote, Share, Category


def _now():
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def create_sample_posts(session: AsyncSession):
    """Create and commit the sample posts.

    posts[0] is the busy post, posts[1] has no related rows at all,
    posts[2] has a few of each.
    """
    posts = [
        Post(title="First Post"),
        Post(title="Quiet Post"),
        Post(title="Third Post"),
    ]
    session.add_all(posts)
    await session.flush()
    await session.commit()
    return posts


@pytest.fixture(scope="function")
async def sample_posts(db_session: AsyncSession):
    return await create_sample_posts(db_session)


async def create_sample_articles(session: AsyncSession):
    """Articles get ids that collide with post ids on purpose (polymorphic isolation)."""
    articles = [Article(headline="Launch"), Article(headline="Roadmap")]
    session.add_all(articles)
    await session.flush()
    await session.commit()
    return articles


@pytest.fixture(scope="function")
async def sample_articles(db_session: AsyncSession):
    return await create_sample_articles(db_session)


async def create_sample_comments(session: AsyncSession, posts):
    """posts[0]: 10 comments (5 soft-deleted); posts[2]: 3 comments (1 soft-deleted)."""
    post1, _, post3 = posts
    deleted_at = _now() - timedelta(minutes=5)
    comments = [Comment(post_id=post1.id, body=f"active {i}") for i in range(5)]
    comments += [Comment(post_id=post1.id, body=f"deleted {i}", deleted_at=deleted_at) for i in range(5)]
    comments += [
        Comment(post_id=post3.id, body="hello"),
        Comment(post_id=post3.id, body="again"),
        Comment(post_id=post3.id, body="oops", deleted_at=deleted_at),
    ]
    session.add_all(comments)
    await session.flush()
    await session.commit()
    return comments


@pytest.fixture(scope="function")
async def sample_comments(db_session: AsyncSession, sample_posts):
    return await create_sample_comments(db_session, sample_posts)


async def create_sample_votes(session: AsyncSession, posts, articles):
    """posts[0]: 5 votes (one negative); posts[2]: 2 votes; articles[0]: 4 votes."""
    post1, _, post3 = posts
    article1, _ = articles
    votes = [Vote(votable_id=post1.id, votable_type='Post', value=1) for _ in range(4)]
    votes.append(Vote(votable_id=post1.id, votable_type='Post', value=-1))
    votes += [
        Vote(votable_id=post3.id, votable_type='Post', value=1),
        Vote(votable_id=post3.id, votable_type='Post', value=-1),
    ]
    votes += [Vote(votable_id=article1.id, votable_type='Article', value=1) for _ in range(4)]
    session.add_all(votes)
    await session.flush()
    await session.commit()
    return votes


@pytest.fixture(scope="function")
async def sample_votes(db_session: AsyncSession, sample_posts, sample_articles):
    return await create_sample_votes(db_session, sample_posts, sample_articles)


async def create_sample_shares(session: AsyncSession, posts):
    """posts[0]: 5 shares; posts[2]: 1 share."""
    post1, _, post3 = posts
    shares = [Share(email=f"reader{i}@example.com", shareable_id=post1.id) for i in range(5)]
    shares.append(Share(email="friend@example.com", shareable_id=post3.id))
    session.add_all(shares)
    await session.flush()
    await session.commit()
    return shares


@pytest.fixture(scope="function")
async def sample_shares(db_session: AsyncSession, sample_posts):
    return await create_sample_shares(db_session, sample_posts)


async def create_sample_categories(session: AsyncSession):
    """One root with two children (one unnamed); categories[1:] have no children."""
    root = Category(name="Root")
    session.add(root)
    await session.flush()
    children = [Category(name="Books", parent_id=root.id), Category(name=None, parent_id=root.id)]
    session.add_all(children)
    await session.flush()
    await session.commit()
    return [root] + children


@pytest.fixture(scope="function")
async def sample_categories(db_session: AsyncSession):
    return await create_sample_categories(db_session)


async def seed_populated_db(session: AsyncSession):
    """Seed every table and return the same structure as populated_db."""
    posts = await create_sample_posts(session)
    articles = await create_sample_articles(session)
    comments = await create_sample_comments(session, posts)
    votes = await create_sample_votes(session, posts, articles)
    shares = await create_sample_shares(session, posts)
    return {
        'posts': posts,
        'articles': articles,
        'comments': comments,
        'votes': votes,
        'shares': shares,
    }


@pytest.fixture(scope="function")
async def populated_db(sample_posts, sample_articles, sample_comments, sample_votes, sample_shares):
    return {
        'posts': sample_posts,
        'articles': sample_articles,
        'comments': sample_comments,
        'votes': sample_votes,
        'shares': sample_shares,
    }


def expected_counts(data, post):
    """Ground-truth counts for one post, computed in Python from the seeded rows."""
    comments = [c for c in data['comments'] if c.post_id == post.id]
    active = [c for c in comments if c.deleted_at is None]
    votes = [v for v in data['votes'] if v.votable_type == 'Post' and v.votable_id == post.id]
    return {
        'comments_count': len(comments),
        'with_even_id_comments_count': sum(1 for c in comments if c.id % 2 == 0),
        'deleted_comments_count': sum(1 for c in comments if c.deleted_at is not None),
        'active_comments_count': len(active),
        'with_even_id_active_comments_count': sum(1 for c in active if c.id % 2 == 0),
        'votes_count': len(votes),
        'upvotes_votes_count': sum(1 for v in votes if v.value > 0),
        'shares_count': sum(1 for s in data['shares'] if s.shareable_id == post.id),
    }
