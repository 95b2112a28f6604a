from support import FakeRemote, api_client, run, seed


def request(discovery, store, method, url, **kwargs):
    async def scenario():
        async with api_client(discovery, store) as (client, registry):
            resp = await client.request(method, url, allow_redirects=False, **kwargs)
            records = await registry.list_devices()
            return resp.status, resp.headers.get("Location"), await resp.text(), records
    return run(scenario())


def test_index_lists_devices(discovery, store):
    seed(store, discovery, FakeRemote("X1", "1.2.3.4", name="Den <3"), FakeRemote("Y2", "1.2.3.5"))
    status, _, page, _ = request(discovery, store, "GET", "/")
    assert status == 200
    assert "Den &lt;3" in page
    assert "Y2" in page and "1.2.3.5" in page


def test_index_orders_names_ignoring_case(discovery, store):
    seed(store, discovery,
         FakeRemote("A", "1.2.3.4", name="Bedroom"),
         FakeRemote("B", "1.2.3.5", name="attic"),
         FakeRemote("C", "1.2.3.6"))
    _, _, page, _ = request(discovery, store, "GET", "/")
    assert page.index(">attic<") < page.index(">Bedroom<") < page.index(">C<")


def test_index_empty(discovery, store):
    status, _, page, _ = request(discovery, store, "GET", "/")
    assert status == 200
    assert "No Rokus registered yet." in page


def test_add_form(discovery, store):
    status, _, page, _ = request(discovery, store, "GET", "/add")
    assert status == 200
    assert 'name="ip_address"' in page


def test_add_registers_and_redirects(discovery, store):
    discovery.at["1.2.3.4"] = FakeRemote("X1", "1.2.3.4", name="LivingRoom")
    status, location, _, records = request(
        discovery, store, "POST", "/add", data={"ip_address": " 1.2.3.4 ", "name": "  "})
    assert (status, location) == (302, "/")
    assert [r.to_dict() for r in records] == [{"id": "X1", "address": "1.2.3.4", "name": "LivingRoom"}]


def test_add_requires_address(discovery, store):
    status, _, page, records = request(discovery, store, "POST", "/add", data={"ip_address": ""})
    assert status == 200
    assert "I.P. Address is required." in page
    assert records == []


def test_add_rejects_invalid_address(discovery, store):
    status, _, page, _ = request(discovery, store, "POST", "/add", data={"ip_address": "1.2.3"})
    assert "I.P. Address is not a valid address." in page
    assert discovery.probed == []


def test_add_device_not_found_keeps_input(discovery, store):
    status, _, page, records = request(
        discovery, store, "POST", "/add", data={"ip_address": "10.0.0.9", "name": "Den"})
    assert status == 200
    assert "could not be found on your local network" in page
    assert 'value="10.0.0.9"' in page and 'value="Den"' in page
    assert records == []
