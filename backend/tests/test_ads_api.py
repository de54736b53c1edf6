import json

from fastapi.testclient import TestClient

from adboard.main import app
from adboard.models import Role

from conftest import make_png

client = TestClient(app)


def _user(email, role=None):
    body = {"username": email, "password": "password1", "firstName": "Ivan",
            "lastName": "Petrov", "phone": "+79991234567"}
    if role:
        body["role"] = role
    assert client.post('/register', json=body).status_code == 201
    return (email, "password1")


def _create_ad(auth, title="Bike", price=100, description="Great bike for sale", image=None):
    props = {"title": title, "price": price, "description": description}
    files = {"image": ("b.jpg", image if image is not None else make_png(), "image/jpeg")}
    return client.post('/ads', data={"properties": json.dumps(props)}, files=files, auth=auth)


def test_create_list_and_get_ad():
    auth = _user('seller@example.com')
    r = _create_ad(auth)
    assert r.status_code == 201
    ad = r.json()
    assert ad['title'] == 'Bike'
    assert ad['price'] == 100
    assert ad['image'] == f"/ads/{ad['pk']}/image"

    listing = client.get('/ads').json()
    assert listing['count'] == 1
    assert listing['results'][0]['pk'] == ad['pk']

    ext = client.get(f"/ads/{ad['pk']}")
    assert ext.status_code == 200
    body = ext.json()
    assert body['authorFirstName'] == 'Ivan'
    assert body['email'] == 'seller@example.com'
    assert body['description'] == 'Great bike for sale'
    assert body['image'] == f"/ads/{ad['pk']}/image"

    img = client.get(f"/ads/{ad['pk']}/image")
    assert img.status_code == 200
    assert img.content == make_png()


def test_create_ad_validation():
    auth = _user('v@example.com')
    assert _create_ad(auth, title='Bk').status_code == 400
    assert _create_ad(auth, price=-1).status_code == 400
    assert _create_ad(auth, price=10_000_001).status_code == 400
    assert _create_ad(auth, description='short').status_code == 400
    missing_image = client.post('/ads', data={"properties": json.dumps(
        {"title": "Bike", "price": 1, "description": "Great bike for sale"})}, auth=auth)
    assert missing_image.status_code == 400
    assert missing_image.json()['message'] == 'ad image is required'
    assert _create_ad(auth, image=b'').status_code == 400
    assert client.get('/ads').json()['count'] == 0


def test_create_ad_accepts_properties_as_json_file_part():
    auth = _user('blob@example.com')
    props = json.dumps({"title": "Lamp", "price": 25, "description": "Desk lamp, barely used"})
    files = {
        "properties": ("blob", props, "application/json"),
        "image": ("b.jpg", make_png(), "image/jpeg"),
    }
    r = client.post('/ads', files=files, auth=auth)
    assert r.status_code == 201
    assert r.json()['title'] == 'Lamp'
    assert client.get(f"/ads/{r.json()['pk']}").json()['description'] == 'Desk lamp, barely used'

    bad = {"properties": ("blob", "{not json", "application/json"), "image": ("b.jpg", make_png(), "image/jpeg")}
    assert client.post('/ads', files=bad, auth=auth).status_code == 400


def test_create_ad_requires_auth():
    r = client.post('/ads', data={"properties": "{}"}, files={"image": ("b.jpg", b"x", "image/jpeg")})
    assert r.status_code == 401


def test_missing_ad_is_404():
    r = client.get('/ads/999')
    assert r.status_code == 404
    assert r.json() == {'message': 'ad not found: 999', 'status': 404}
    assert client.get('/ads/999/image').status_code == 404


def test_update_and_my_ads():
    a = _user('a@example.com')
    b = _user('b@example.com')
    ad_a = _create_ad(a, title='Lamp').json()
    _create_ad(b, title='Sofa')

    mine = client.get('/ads/me', auth=a).json()
    assert mine['count'] == 1
    assert mine['results'][0]['title'] == 'Lamp'

    patch = {"title": "Desk lamp", "price": 15, "description": "Bright desk lamp"}
    r = client.patch(f"/ads/{ad_a['pk']}", json=patch, auth=a)
    assert r.status_code == 200
    assert r.json()['title'] == 'Desk lamp'

    denied = client.patch(f"/ads/{ad_a['pk']}", json=patch, auth=b)
    assert denied.status_code == 403
    assert denied.json()['status'] == 403


def test_non_owner_delete_is_forbidden_and_ad_survives():
    a = _user('a@example.com')
    b = _user('b@example.com')
    ad = _create_ad(b).json()
    r = client.delete(f"/ads/{ad['pk']}", auth=a)
    assert r.status_code == 403
    assert client.get(f"/ads/{ad['pk']}").status_code == 200


def test_delete_ad_cascades_comments():
    a = _user('a@example.com')
    b = _user('b@example.com')
    ad = _create_ad(a).json()
    c = client.post(f"/ads/{ad['pk']}/comments", json={"text": "Is it available?"}, auth=b)
    assert c.status_code == 200
    assert client.get(f"/ads/{ad['pk']}/comments").json()['count'] == 1

    r = client.delete(f"/ads/{ad['pk']}", auth=a)
    assert r.status_code == 204
    assert client.get(f"/ads/{ad['pk']}").status_code == 404
    assert client.get(f"/ads/{ad['pk']}/comments").status_code == 404
    assert client.get(f"/ads/{ad['pk']}/image").status_code == 404


def test_admin_can_delete_any_ad():
    owner = _user('owner@example.com')
    admin = _user('admin@example.com', role=Role.ADMIN.value)
    ad = _create_ad(owner).json()
    assert client.delete(f"/ads/{ad['pk']}", auth=admin).status_code == 204


def test_replace_ad_image():
    a = _user('a@example.com')
    ad = _create_ad(a).json()
    new_png = make_png('black')
    r = client.patch(f"/ads/{ad['pk']}/image", files={"image": ("n.png", new_png, "image/png")}, auth=a)
    assert r.status_code == 200
    assert client.get(f"/ads/{ad['pk']}/image").content == new_png
    empty = client.patch(f"/ads/{ad['pk']}/image", files={"image": ("n.png", b"", "image/png")}, auth=a)
    assert empty.status_code == 400


def test_comment_endpoints():
    a = _user('a@example.com')
    b = _user('b@example.com')
    ad = _create_ad(a).json()
    url = f"/ads/{ad['pk']}/comments"

    created = client.post(url, json={"text": "Can I see it today?"}, auth=b).json()
    assert created['author'] != ad['author']
    assert created['authorFirstName'] == 'Ivan'
    assert created['authorImage'] == ''
    assert isinstance(created['createdAt'], int)

    too_short = client.post(url, json={"text": "hi"}, auth=b)
    assert too_short.status_code == 400

    listing = client.get(url).json()
    assert listing['count'] == 1
    assert listing['results'][0]['text'] == 'Can I see it today?'

    edit_url = f"{url}/{created['pk']}"
    assert client.patch(edit_url, json={"text": "Owner rewrites it"}, auth=a).status_code == 403
    r = client.patch(edit_url, json={"text": "Can I see it tomorrow?"}, auth=b)
    assert r.status_code == 200
    assert r.json()['text'] == 'Can I see it tomorrow?'
    assert r.json()['createdAt'] == created['createdAt']

    assert client.delete(edit_url, auth=a).status_code == 403
    assert client.delete(edit_url, auth=b).status_code == 200
    assert client.get(url).json() == {'count': 0, 'results': []}


def test_comment_path_must_match_ad():
    a = _user('a@example.com')
    first = _create_ad(a, title='First').json()
    second = _create_ad(a, title='Second').json()
    c = client.post(f"/ads/{first['pk']}/comments", json={"text": "On the first ad"}, auth=a).json()
    r = client.delete(f"/ads/{second['pk']}/comments/{c['pk']}", auth=a)
    assert r.status_code == 404
    assert client.get(f"/ads/{first['pk']}/comments").json()['count'] == 1


def test_comment_on_missing_ad():
    a = _user('a@example.com')
    r = client.post('/ads/4040/comments', json={"text": "Nobody home?"}, auth=a)
    assert r.status_code == 404
