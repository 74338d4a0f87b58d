import pytest

from magikarp.feed_store import LATER_STEP, MARKED_TIME_TTL, FeedArchive, FeedCache, NotFound
from magikarp.models import Video

LATEST = 1_700_000_000
DAY = 86400


class FakeRedis:
    def __init__(self):
        self.lists = {}
        self.strings = {}
        self.expiry = {}

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
        self.expiry[name] = ex


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
        self.queries = []

    def find_one(self, filter):
        return next((d for d in self.documents if _matches(d, filter)), None)

    def find(self, filter):
        self.queries.append(filter)
        return [d for d in self.documents if _matches(d, filter)]


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


@pytest.fixture
def redis():
    return FakeRedis()


@pytest.fixture
def cache(redis):
    return FeedCache(redis, redis)


def test_right_push_round_trip(cache):
    videos = [Video(id=1, title="a", timestamp="5"), Video(id=2, title="b", timestamp="6")]
    cache.set_feed_cache("r", "key", videos)
    popped, full = cache.get_feed_cache("key", 10)
    assert popped == videos
    assert full is False


def test_left_push_reverses_order(cache):
    cache.set_feed_cache("l", "key", [Video(id=1), Video(id=2)])
    popped, _ = cache.get_feed_cache("key", 10)
    assert [v.id for v in popped] == [2, 1]


def test_unknown_method_raises(cache):
    with pytest.raises(ValueError):
        cache.set_feed_cache("x", "key", [Video(id=1)])


def test_empty_push_raises(cache):
    with pytest.raises(ValueError):
        cache.set_feed_cache("r", "key", [])


def test_empty_box(cache):
    assert cache.get_feed_cache("missing", 10) == ([], False)


def test_more_than_full_batch_flags_true(cache):
    videos = [Video(id=i) for i in range(12)]
    cache.set_feed_cache("r", "key", videos)
    popped, full = cache.get_feed_cache("key", 12)
    assert full is True
    assert len(popped) == len(videos)


def test_pop_leaves_remainder(cache, redis):
    cache.set_feed_cache("r", "key", [Video(id=i) for i in range(5)])
    popped, _ = cache.get_feed_cache("key", 3)
    assert [v.id for v in popped] == [0, 1, 2]
    assert len(redis.lists["key"]) == 2


def test_malformed_entry_gives_empty(cache, redis):
    redis.lists["key"] = ["not json"]
    assert cache.get_feed_cache("key", 10) == ([], False)


def test_marked_time_round_trip(cache, redis):
    cache.set_marked_time("key", "12345")
    assert cache.get_marked_time("key") == "12345"
    assert redis.expiry["key"] == MARKED_TIME_TTL


def test_marked_time_missing(cache):
    with pytest.raises(NotFound):
        cache.get_marked_time("key")


def test_get_video_matches_user_id_field():
    archive = FeedArchive(FakeCollection([doc(3, 10, user_id=9)]))
    video = archive.get_video(9)
    assert video.id == 3
    assert video.author_id == 9
    assert video.timestamp == "10"


def test_get_video_missing():
    archive = FeedArchive(FakeCollection([]))
    with pytest.raises(NotFound):
        archive.get_video(1)


def test_find_feed_bounds():
    archive = FeedArchive(FakeCollection([doc(1, 100), doc(2, 150), doc(3, 200), doc(4, 201)]))
    assert [v.id for v in archive.find_feed(100, 200)] == [2, 3]


def test_find_feed_skips_bad_documents():
    bad = doc(9, 150)
    bad["title"] = 5
    archive = FeedArchive(FakeCollection([bad, doc(2, 150)]))
    assert [v.id for v in archive.find_feed(100, 200)] == [2]


def test_search_earlier_stops_past_stop_time():
    docs = [doc(1, LATEST - 10), doc(2, LATEST - DAY - 10), doc(3, LATEST - 3 * DAY)]
    archive = FeedArchive(FakeCollection(docs))
    found = archive.search_earlier(LATEST, LATEST - 100_000)
    assert [v.id for v in found] == [1, 2]


def test_search_earlier_stops_after_enough_videos():
    collection = FakeCollection([doc(i, LATEST - 1) for i in range(31)])
    archive = FeedArchive(collection)
    found = archive.search_earlier(LATEST, LATEST - 14 * DAY)
    assert len(found) == 31
    assert len(collection.queries) == 1


def test_search_later_single_step():
    marked = LATEST - 7 * 3600
    archive = FeedArchive(FakeCollection([doc(5, marked + 10), doc(6, marked)]))
    videos, new_mark = archive.search_later(str(marked), str(LATEST))
    assert [v.id for v in videos] == [5]
    assert new_mark == str(marked + LATER_STEP)


def test_search_later_walks_while_ahead_of_current():
    marked = LATEST
    collection = FakeCollection([])
    archive = FeedArchive(collection)
    videos, new_mark = archive.search_later(str(marked), str(marked - 3 * LATER_STEP))
    assert videos == []
    assert int(new_mark) - LATEST == len(collection.queries) * LATER_STEP
    assert len(collection.queries) > 1