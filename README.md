# magikarp

The backend pieces of a short-video application: a time-ordered video
feed with a per-user inbox, comments, likes ("favorites") and a Flask
application that puts them behind one set of HTTP routes.

The stores work on objects you pass in: a Redis-like client, a
Mongo-like collection or an `sqlite3` connection. Real backends can
drive the services in production, and in-memory fakes can drive them in
tests.

## What is inside

| Module | Purpose |
| --- | --- |
| `magikarp.models` | Data types: `Video`, `MongoVideo`, `User`, `Comment`, `Favorite`, `FavoriteCount`, `Login`, `PublishAction`, `CommonResp`, `UserResp`, the `Status` codes and `mongo_video_from_document`. |
| `magikarp.feed_util` | Feed helpers: `judge_time_diff`, `lfill`, `fill_user_id`, `videos_to_json`, `videos_from_json`. |
| `magikarp.feed_store` | `FeedCache`, a per-user inbox plus a "marked time", and `FeedArchive`, time-window queries over archived videos. |
| `magikarp.feed_service` | `FeedService`, which builds feed pages and fills in likes, comment counts and authors through a `FeedPeers` object. Also `FeedVideo` and `FeedListResp`. |
| `magikarp.comment_service` | `CommentStore`, which works on an `sqlite3` connection and creates its tables, and `CommentService` on top of it. |
| `magikarp.favorite_store` | `FavoriteCache`, per-user like flags and per-video counters in a hash/string store, and `FavoriteArchive`, like records kept as documents. |
| `magikarp.favorite_service` | `FavoriteService` and `apply_favorite`. |
| `magikarp.middleware` | `cors_headers`, `install` (preflight answers, CORS headers and error recovery), `require_token` and the `TokenParser` protocol. |
| `magikarp.gateway` | `Backends` and `create_app(backends, tokens)`, the Flask application with every route. |

## Status codes

`magikarp.models.Status` holds the codes used in response bodies:

| Name | Value |
| --- | --- |
| `DOUYIN_SUCCESS` | 0 |
| `SUCCESS` | 200 |
| `INVALID_PARAMS` | 400 |
| `ERROR_AUTH_NOT_FOUND` | 401 |
| `ERROR` | 500 |

## Feed helpers

```python
from magikarp.feed_util import fill_user_id, judge_time_diff, lfill

fill_user_id("42")                           # "00000000000000000042"
lfill("7", 3)                                # "007"
judge_time_diff(1_000_000, "978400", 21600)  # True: 1_000_000 - 978400 >= 21600
```

`judge_time_diff` treats text that is not a decimal number as 0.
`videos_to_json` turns each `Video` into a compact JSON string.
`videos_from_json` turns such strings back into videos and raises
`ValueError` on malformed input.

## The feed

`FeedCache(feed_client, marked_client)` expects a list client with
`lpop`, `lpush` and `rpush`. It also expects a string client with `get`
and `set(name, value, ex=...)`. The marked time is stored with a TTL of
one day. `get_marked_time` raises `feed_store.NotFound` when no marked
time is stored. `set_feed_cache` accepts only `"l"` or `"r"` as the
method, and raises `ValueError` when it has no videos to push.

`FeedArchive(collection)` expects a collection with `find_one` and
`find`:

- `find_feed(start, end)` returns videos with `start < timestamp <= end`
  and skips documents it cannot decode.
- `search_earlier` steps back one day at a time. It stops once more than
  thirty videos are found or once it passes the stop time.
- `search_later` steps forward six hours at a time and returns the videos
  together with the new marked time.
- `get_video(video_id)` looks up the first document whose `user_id`
  field equals the given id.

`FeedService(archive, cache, peers, clock)` builds a page in these
steps:

1. `list_videos` pops up to ten videos from the user's inbox.
2. It searches the archive backwards from the current clock time, up to
   fourteen days. It searches once more if fewer than ten videos come
   back. The `last_time` argument is not used as a starting point.
3. It appends the results to the inbox, then pops up to ten videos as
   the page.
4. When six hours or more have passed since the marked time, it searches
   forward, appends the newer videos to the inbox and moves the mark.

A page is returned with code 1 and a failure message in these cases:

- The archive search fails.
- The inbox cannot be filled. This includes the case where the search
  found nothing.

`pack_feed_list` asks the peers for like flags, like counts and comment
counts. It returns `None` if any of these lookups fails. It drops videos
whose author cannot be fetched. It sets `next_time` to the smallest
timestamp on the page, or to 9777777777 when the page is empty.
`get_video_by_id` returns an empty `FeedVideo` when the lookup fails.

## Comments

```python
import sqlite3
from magikarp.comment_service import CommentService, CommentStore

service = CommentService(CommentStore(sqlite3.connect(":memory:")))
service.comment_count([1]).comment_count   # {1: 0}
```

`comment_action` adds a comment when the action type is 1. It deletes
the user's comments on that video when the action type is 2. Either way
the reply it returns carries `Status.INVALID_PARAMS` with the message
"无效参数". `comment_list` fails with `Status.ERROR` when a comment's
author is not in the `users` table.

## Favorites

- `FavoriteCache.write_favorite` sets the flag for a video in the user's
  hash to `"1"` (liked) or `"0"` (not liked).
- `FavoriteCache.update_count` moves a video's counter by ±1. A counter
  that is not set yet starts at 1.
- `FavoriteCache.updated_counts` reports each counter plus 100, and
  `FavoriteService.favorite_count` answers with these values. An empty id
  list gets `Status.ERROR`.
- `FavoriteService.favorite_action` takes action type 1 (like) or
  2 (unlike). It writes the cache flag, the counter and the archive
  record. Any other action type gets `Status.INVALID_PARAMS`.
- `favorite_list` and `is_favorite` read the cache first and fall back to
  the archive. `is_favorite` writes likes found only in the archive back
  to the cache. It maps every liked video to `True`, whatever ids were
  asked about.

## The gateway

```python
from magikarp.gateway import Backends, create_app

app = create_app(backends, tokens)
```

`Backends` bundles the services the routes call: `users`, `feed`,
`favorites`, `comments`, `publisher` and `relations`. `tokens` is a
`TokenParser`, an object with `parse_token(token) -> user_id` and
`generate_token(user_id, email)`. All routes live under `/douyin`:

| Method | Path | Token |
| --- | --- | --- |
| POST | `/douyin/user/login/`, `/douyin/user/register/` | no |
| GET | `/douyin/user/` | yes |
| GET | `/douyin/feed/` | optional |
| POST | `/douyin/comment/action/` | yes |
| GET | `/douyin/comment/count/`, `/douyin/comment/list/` | yes |
| POST | `/douyin/favorite/action/` | yes |
| GET | `/douyin/favorite/list/`, `/douyin/favorite/is/` | yes |
| GET | `/douyin/favorite/count/` | no |
| GET | `/douyin/publish/list/` | yes |
| POST | `/douyin/publish/action/` | in the form body |
| POST | `/douyin/relation/action/` | yes |
| GET | `/douyin/relation/follow/`, `/douyin/relation/follower/`, `/douyin/relation/friend/` | yes |

Authentication:

- Protected routes read the `token` query parameter.
- A missing token gets HTTP 200 with a body carrying
  `Status.ERROR_AUTH_NOT_FOUND`.
- A token that fails to parse gets HTTP 401.
- Login and register take `username` and `password` query parameters.
  When the user service answers `Status.SUCCESS`, the gateway adds a
  token and sets `status_code` to 0.

Every response carries permissive CORS headers. `OPTIONS` requests are
answered with 204 No Content. An uncaught error becomes HTTP 200 with
`{"code": 500, "msg": ...}`.

## What this package does not do

There is no command to start a server. `create_app` returns a Flask
application, and serving it is up to you.

The package contains no user, publish or relation service, and no token
implementation. The gateway calls whatever objects you put in `Backends`
and `tokens`.

There is no service discovery or RPC transport. The services are plain
Python objects.