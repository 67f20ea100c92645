"""Quick runtime checks for the estimate engine.
Run: python -m scripts.quickcheck
Exits with code 0 on success, non-zero on failure.
"""
from estimator.calculator import compute_costs
from estimator.payments import compute_payments


def approx(a, b, tol=1e-6):
    return abs(a - b) <= tol


def project(settings=None):
    return {
        "customerInfo": {"firstName": "Quick", "lastName": "Check"},
        "categories": [
            {
                "key": "walls",
                "name": "Walls",
                "workItems": [
                    {
                        "name": "Paint walls",
                        "measurementType": "square-foot",
                        "materialCost": 2,
                        "laborCost": 3,
                        "surfaces": [{"sqft": 100}],
                    }
                ],
            }
        ],
        "settings": settings or {},
    }


def main():
    # A: plain item
    res = compute_costs(project())
    assert approx(res.material_cost, 200.0)
    assert approx(res.labor_cost, 300.0)
    assert approx(res.subtotal, 500.0)
    assert approx(res.total_project_value, 500.0)

    # B: flat waste
    res = compute_costs(project({"wasteFactor": 0.1}))
    assert approx(res.waste, 20.0)
    assert approx(res.subtotal, 520.0)

    # C: tax + markup on the subtotal
    res = compute_costs(project({"wasteFactor": 0.1, "taxRate": 0.08, "markup": 0.15}))
    assert approx(res.tax, 41.6)
    assert approx(res.markup, 78.0)
    assert approx(res.total_project_value, 639.6)

    # D: deposit counted once
    pay = compute_payments(
        project({"deposit": 100, "payments": [{"type": "Deposit", "amount": 100, "isPaid": True}]})
    )
    assert approx(pay.total_paid, 100.0)

    # E: fully-paid tolerance
    pay = compute_payments(project({"payments": [{"amount": 499.995, "isPaid": True}]}))
    assert pay.is_fully_paid
    pay = compute_payments(project({"payments": [{"amount": 499.98, "isPaid": True}]}))
    assert not pay.is_fully_paid

    print("Quickcheck OK")


if __name__ == '__main__':
    main()
