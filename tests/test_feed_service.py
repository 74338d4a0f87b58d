import json

import pytest

from magikarp.feed_service import NO_NEXT_TIME, FeedService, FeedVideo
from magikarp.feed_store import LATER_STEP, FeedArchive, FeedCache
from magikarp.feed_util import fill_user_id
from magikarp.models import Video

NOW = 1_700_000_000
USER = 42
KEY = fill_user_id(str(USER))


class FakeRedis:
    def __init__(self):
        self.lists = {}
        self.strings = {}

    def lpop(self, name, count=None):
        items = self.lists.get(name)
        if not items:
            return None
        taken = items[:count]
        del items[:count]
        return taken

    def lpush(self, name, *values):
        items = self.lists.setdefault(name, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    def rpush(self, name, *values):
        items = self.lists.setdefault(name, [])
        items.extend(values)
        return len(items)

    def get(self, name):
        return self.strings.get(name)

    def set(self, name, value, ex=None):
        self.strings[name] = value


def _matches(document, query):
    for key, condition in query.items():
        if key == "$and":
            if not all(_matches(document, sub) for sub in condition):
                return False
        elif isinstance(condition, dict):
            value = document.get(key)
            if value is None:
                return False
            if "$gt" in condition and not value > condition["$gt"]:
                return False
            if "$lte" in condition and not value <= condition["$lte"]:
                return False
        elif document.get(key) != condition:
            return False
    return True


class FakeCollection:
    def __init__(self, documents):
        self.documents = list(documents)

    def find_one(self, filter):
        return next((d for d in self.documents if _matches(d, filter)), None)

    def find(self, filter):
        return [d for d in self.documents if _matches(d, filter)]


class FakePeers:
    def __init__(self, favorites=(), likes=None, comments=None, users=None, fail=()):
        self.favorites = set(favorites)
        self.likes = likes or {}
        self.comments = comments or {}
        self.users = users if users is not None else {7: {"name": "alice"}}
        self.fail = set(fail)

    def _check(self, name):
        if name in self.fail:
            raise RuntimeError(name)

    def is_favorite(self, user_id, video_ids):
        self._check("is_favorite")
        return {v: True for v in video_ids if v in self.favorites}

    def favorite_count(self, video_ids):
        self._check("favorite_count")
        return {v: self.likes[v] for v in video_ids if v in self.likes}

    def comment_count(self, video_ids):
        self._check("comment_count")
        return {v: self.comments[v] for v in video_ids if v in self.comments}

    def get_user(self, user_id):
        if user_id not in self.users:
            raise LookupError(user_id)
        return self.users[user_id]


def doc(video_id, timestamp, user_id=7):
    return {
        "id": video_id,
        "user_id": user_id,
        "title": f"video {video_id}",
        "play_url": f"play/{video_id}",
        "cover_url": f"cover/{video_id}",
        "label": "",
        "category": "",
        "timestamp": timestamp,
    }


def make_service(documents, peers=None):
    redis = FakeRedis()
    service = FeedService(
        FeedArchive(FakeCollection(documents)),
        FeedCache(redis, redis),
        peers or FakePeers(),
        clock=lambda: NOW,
    )
    return service, redis


def test_list_videos_fills_counts_and_authors():
    peers = FakePeers(favorites={3}, likes={1: 5}, comments={2: 4})
    service, _ = make_service([doc(1, NOW - 10), doc(2, NOW - 20), doc(3, NOW - 30)], peers)
    resp = service.list_videos(USER, 0)
    assert resp.code == 0
    assert resp.msg == "Success"
    assert [v.id for v in resp.video_list] == [1, 2, 3]
    assert [v.favorite_count for v in resp.video_list] == [5, 0, 0]
    assert [v.comment_count for v in resp.video_list] == [0, 4, 0]
    assert [v.is_favorite for v in resp.video_list] == [False, False, True]
    assert all(v.author == peers.users[7] for v in resp.video_list)
    assert resp.next_time == NOW - 30


def test_list_videos_keeps_remainder_in_box():
    service, redis = make_service([doc(i, NOW - 10 - i) for i in range(1, 16)])
    resp = service.list_videos(USER, 0)
    assert len(resp.video_list) == 10
    assert len(redis.lists[KEY]) == 5


def test_list_videos_empty_archive():
    service, _ = make_service([])
    resp = service.list_videos(USER, 0)
    assert resp.code == 1
    assert resp.msg == "set send box failed"
    assert resp.video_list == []
    assert resp.next_time == int(NO_NEXT_TIME)


def test_list_videos_sets_marked_time():
    service, redis = make_service([doc(1, NOW - 10)])
    service.list_videos(USER, 0)
    assert redis.strings[KEY] == str(NOW)


def test_list_videos_refreshes_stale_marked_time():
    marked = NOW - 7 * 3600
    service, redis = make_service([doc(50, marked + 10)])
    redis.strings[KEY] = str(marked)
    resp = service.list_videos(USER, 0)
    assert [v.id for v in resp.video_list] == [50]
    assert redis.strings[KEY] == str(marked + LATER_STEP)
    assert [json.loads(item)["id"] for item in redis.lists[KEY]] == [50]


def test_list_videos_peer_failure_gives_none():
    service, _ = make_service([doc(1, NOW - 10)], FakePeers(fail={"favorite_count"}))
    assert service.list_videos(USER, 0) is None


def test_unknown_author_is_skipped():
    peers = FakePeers(users={7: {"name": "alice"}})
    service, _ = make_service([doc(1, NOW - 10), doc(2, NOW - 20, user_id=8)], peers)
    resp = service.list_videos(USER, 0)
    assert [v.id for v in resp.video_list] == [1]
    assert resp.next_time == NOW - 10


def test_pack_feed_list_empty():
    service, _ = make_service([])
    resp = service.pack_feed_list([], 3, "msg", USER)
    assert resp.code == 3
    assert resp.msg == "msg"
    assert resp.video_list == []
    assert resp.next_time == int(NO_NEXT_TIME)


def test_pack_feed_list_uses_smallest_timestamp():
    service, _ = make_service([])
    videos = [Video(id=1, author_id=7, timestamp="300"), Video(id=2, author_id=7, timestamp="200")]
    resp = service.pack_feed_list(videos, 0, "ok", USER)
    assert resp.next_time == 200


def test_get_video_by_id():
    peers = FakePeers(likes={3: 8}, comments={3: 2})
    service, _ = make_service([doc(3, NOW, user_id=5)], peers)
    video = service.get_video_by_id(5)
    assert video.id == 3
    assert video.favorite_count == 8
    assert video.comment_count == 2
    assert video.is_favorite is True
    assert video.title == "video 3"


def test_get_video_by_id_missing():
    service, _ = make_service([])
    assert service.get_video_by_id(1) == FeedVideo()


def test_pack_video_info_propagates_peer_failure():
    service, _ = make_service([], FakePeers(fail={"comment_count"}))
    with pytest.raises(RuntimeError):
        service.pack_video_info(Video(id=1))