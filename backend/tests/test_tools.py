"""Tools panel endpoints: calculator, unit converter, markup rendering."""

import pytest

pytestmark = pytest.mark.asyncio


async def test_calculate(client, auth_headers):
    res = await client.post("/tools/calculate", headers=auth_headers, json={"expression": "sqrt(2)^2 + 3"})
    assert res.status_code == 200
    assert res.json() == {"expression": "sqrt(2)^2 + 3", "result": "5"}


async def test_calculate_invalid_expression(client, auth_headers):
    res = await client.post("/tools/calculate", headers=auth_headers, json={"expression": "2 +* 3"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Error"


async def test_calculate_rejects_long_expression(client, auth_headers):
    res = await client.post("/tools/calculate", headers=auth_headers, json={"expression": "1+" * 300 + "1"})
    assert res.status_code == 422


async def test_units(client, auth_headers):
    res = await client.get("/tools/units", headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["categories"]["angle"] == ["rad", "deg", "grad"]


async def test_convert(client, auth_headers):
    res = await client.post(
        "/tools/convert",
        headers=auth_headers,
        json={"category": "length", "value": 5, "from_unit": "ft", "to_unit": "m"},
    )
    assert res.status_code == 200
    assert res.json() == {"result": "1.524", "unit": "m"}


async def test_convert_unknown_unit(client, auth_headers):
    res = await client.post(
        "/tools/convert",
        headers=auth_headers,
        json={"category": "length", "value": 5, "from_unit": "ft", "to_unit": "parsec"},
    )
    assert res.status_code == 400


async def test_render(client, auth_headers):
    res = await client.post("/tools/render", headers=auth_headers, json={"content": "**Answer:** $x = 2$"})
    assert res.status_code == 200
    assert '<span class="math-inline">\\(x = 2\\)</span>' in res.json()["html"]


async def test_tools_require_auth(client):
    assert (await client.get("/tools/units")).status_code == 401


async def test_render_strips_links(client, auth_headers):
    res = await client.post(
        "/tools/render", headers=auth_headers, json={"content": "[x](javascript:alert(1)) %%MATH0%%"}
    )
    assert res.status_code == 200
    html = res.json()["html"]
    assert "<a" not in html
    assert "%%MATH0%%" in html


@pytest.mark.parametrize("expression", ["9^9^9", "10^10^10"])
async def test_calculate_power_tower_overflows_to_infinity(client, auth_headers, expression):
    res = await client.post("/tools/calculate", headers=auth_headers, json={"expression": expression})
    assert res.status_code == 200
    assert res.json()["result"] == "Infinity"


async def test_calculate_timeout_is_an_error(client, auth_headers, monkeypatch):
    import time

    import routers.tools as tools

    def slow(expression):
        time.sleep(0.5)
        return "1"

    monkeypatch.setattr(tools, "evaluate_expression", slow)
    monkeypatch.setattr(tools.Config, "CALC_TIMEOUT", 0.05)
    res = await client.post("/tools/calculate", headers=auth_headers, json={"expression": "1"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Error"
