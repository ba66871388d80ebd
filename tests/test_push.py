from __future__ import annotations

import pytest

from polycom_vvx import RestClient, PushPriority, build_push_document, push_message

from conftest import FakeSession, make_response

def test_build_push_document():
    assert build_push_document("<h1>Fire drill at 3pm</h1>", PushPriority.CRITICAL) == (
        '<PolycomIPPhone><Data priority="Critical"><h1>Fire drill at 3pm</h1></Data></PolycomIPPhone>'
    )

def test_build_push_document_accepts_priority_name():
    assert 'priority="Important"' in build_push_document("hi", "Important")
    with pytest.raises(ValueError):
        build_push_document("hi", "Urgent")

def test_push_message_posts_xml():
    session = FakeSession(make_response(text="<PolycomIPPhone>ok</PolycomIPPhone>"))
    client = RestClient(session=session)
    reply = push_message(client, "10.0.0.21", "Hello", credential=("Push", "secret"))
    assert reply == "<PolycomIPPhone>ok</PolycomIPPhone>"
    request = session.requests[0]
    assert request["method"] == "POST"
    assert request["url"] == "HTTP://10.0.0.21:80/push"
    assert request["headers"] == {"Content-Type": "text/xml"}
    assert request["data"] == b'<PolycomIPPhone><Data priority="Normal">Hello</Data></PolycomIPPhone>'
    assert request["auth"] == ("Push", "secret")
    assert client.last_call.credential == "Push"
