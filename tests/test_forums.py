import json

from sqlalchemy import select

from conftest import CSRF_TOKEN
from db_models import Forum, SessionLocal
from forums import ensure_seed_forums


def test_index_lists_forums(client, forum):
    body = client.get("/").get_data(as_text=True)
    assert "General Discussion" in body
    assert "/forum/general" in body


def test_show_lists_active_topics(client, forum, make_topic):
    kept = make_topic(title="Still here")
    gone = make_topic(title="Going away")
    client.post(f"/topic/{gone['slug']}/delete/{gone['post_ids'][0]}", data={"csrf_token": CSRF_TOKEN})
    body = client.get(f"/forum/{forum['slug']}").get_data(as_text=True)
    assert "Still here" in body
    assert "Going away" not in body
    assert f"/topic/{kept['slug']}/last" in body


def test_show_unknown_forum(client):
    response = client.get("/forum/nowhere")
    assert response.status_code == 404
    assert "The forum you are looking for could not be found." in response.get_data(as_text=True)


def test_seed_is_idempotent(app, tmp_path):
    seed = tmp_path / "forums.json"
    seed.write_text(
        json.dumps({"forums": [{"title": "News", "slug": "news", "description": "Updates"}, {"title": ""}]}),
        encoding="utf-8",
    )
    assert ensure_seed_forums(seed) == 1
    assert ensure_seed_forums(seed) == 0
    with SessionLocal() as db:
        forums = db.execute(select(Forum)).scalars().all()
        assert [(f.slug, f.description) for f in forums] == [("news", "Updates")]


def test_seed_missing_or_broken_file(app, tmp_path):
    assert ensure_seed_forums(tmp_path / "absent.json") == 0
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert ensure_seed_forums(broken) == 0
