import pytest

from magikarp.models import (
    CommonResp,
    Login,
    MongoVideo,
    Status,
    UserResp,
    Video,
    mongo_video_from_document,
)


def test_common_resp_to_dict_uses_wire_keys():
    resp = CommonResp(status_code=Status.INVALID_PARAMS, status_msg="bad")
    assert resp.to_dict() == {"status_code": int(Status.INVALID_PARAMS), "status_msg": "bad"}


def test_user_resp_uses_id_key():
    resp = UserResp(user_id="7", token="token", status_code=Status.SUCCESS, status_msg="ok")
    data = resp.to_dict()
    assert data["id"] == "7"
    assert data["token"] == "token"


@pytest.mark.parametrize("username,password", [("", "password"), ("a@example.com", "")])
def test_login_requires_both_fields(username, password):
    with pytest.raises(ValueError):
        Login(username=username, password=password)


def test_login_keeps_values():
    password = "password"
    login = Login(username="a@example.com", password=password)
    assert login.username == "a@example.com"
    assert login.password == password


def test_video_dict_round_trip():
    video = Video(id=3, author_id=9, title="t", play_url="p", open=True, timestamp="100", duration=5)
    assert Video.from_dict(video.to_dict()) == video


def test_video_dict_has_source_keys():
    keys = set(Video().to_dict())
    assert {"author_id", "cover_url", "play_url", "favorite_count", "timestamp"} <= keys


def test_video_from_dict_rejects_wrong_type():
    with pytest.raises(ValueError):
        Video.from_dict({"author_id": "nine"})


def test_video_from_dict_none_gives_default():
    assert Video.from_dict(None) == Video()


def test_mongo_video_to_video_maps_fields():
    doc = MongoVideo(id=4, user_id=8, title="x", play_url="p", cover_url="c",
                     label="l", category="k", timestamp=1700000000)
    video = doc.to_video()
    assert video.id == 4
    assert video.author_id == 8
    assert video.timestamp == str(1700000000)
    assert (video.title, video.play_url, video.cover_url, video.label, video.category) == (
        "x", "p", "c", "l", "k")


def test_mongo_video_from_document_fills_defaults():
    doc = mongo_video_from_document({"id": 2, "title": "hi", "_id": "ignored"})
    assert doc == MongoVideo(id=2, title="hi")


def test_mongo_video_from_document_rejects_bad_type():
    with pytest.raises(ValueError):
        mongo_video_from_document({"timestamp": "soon"})