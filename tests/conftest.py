"""
Shared fixtures: raw project payloads in the camelCase wire format.
"""
import pytest


def work_item(material=2.0, labor=3.0, surfaces=None, **extra):
    item = {
        "name": extra.pop("name", "Paint walls"),
        "measurementType": extra.pop("measurementType", "square-foot"),
        "materialCost": material,
        "laborCost": labor,
        "surfaces": surfaces if surfaces is not None else [{"sqft": 100}],
    }
    item.update(extra)
    return item


def raw_project(settings=None, items=None, customer=None, **extra):
    project = {
        "customerInfo": customer or {"firstName": "Jane", "lastName": "Doe", "projectName": "Kitchen"},
        "categories": [
            {
                "key": "walls",
                "name": "Walls",
                "workItems": items if items is not None else [work_item()],
            }
        ],
        "settings": settings or {},
    }
    project.update(extra)
    return project


@pytest.fixture
def make_project():
    """Factory for raw projects; defaults to one 100 sqft item at 2.00/3.00."""
    return raw_project


@pytest.fixture
def make_item():
    return work_item


@pytest.fixture
def scenario_c(make_project):
    """Subtotal 520, tax 41.6, markup 78, total 639.6."""
    return make_project({"wasteFactor": 0.1, "taxRate": 0.08, "markup": 0.15})
