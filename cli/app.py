# cli/app.py
# CLI = тимчасовий UI. Його можна замінити на Web/iOS, не чіпаючи estimator.

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from estimator.cache import TotalsCache
from estimator.calculator import costs_for
from estimator.limits import DEFAULT_LIMITS, EngineLimits, load_limits
from estimator.normalize import normalize_projects
from estimator.payments import payments_for
from estimator.revenue import compute_additional_revenue, project_revenue

HISTORY_DIR = Path(__file__).resolve().parents[1] / "data" / "history"


# ---------- ДОПОМІЖНІ ФУНКЦІЇ ВВОДУ ----------

def ask_yes_no(prompt: str) -> bool:
    """Безпечний ввід так/ні: повертає True або False."""
    while True:
        raw = input(prompt + " (y/n): ").strip().lower()
        if raw in ("y", "yes"):
            return True
        if raw in ("n", "no"):
            return False
        print("❌ Enter y or n")


def money(x: float) -> str:
    """Красивий формат грошей."""
    return f"${x:,.2f}"


# ---------- ЗАВАНТАЖЕННЯ ПРОЄКТІВ З JSON ----------

def load_projects(path: str | Path) -> list[Any]:
    """Файл з одним проєктом (object) або списком проєктів (array)."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        return [raw]
    if isinstance(raw, list):
        return raw
    raise ValueError(f"{path}: expected a project object or a list of projects")


# ---------- REPORT ----------

def build_report(
    projects: list[Any],
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    as_of: datetime | None = None,
) -> dict[str, Any]:
    """Зібрати звіт: витрати, оплати і додатковий дохід по кожному проєкту."""
    places = limits.currency_precision
    entries = []

    for prepared in normalize_projects(projects, limits).value:
        project = prepared.value
        costs = costs_for(project, limits=limits, cache=cache, ingest_errors=prepared.errors)
        ledger = payments_for(project, costs=costs, limits=limits, as_of=as_of)
        revenue, _ = project_revenue(project, limits=limits, cache=cache, as_of=as_of)

        entries.append(
            {
                "project": {
                    "id": project.project_id,
                    "name": project.customer_info.display_name,
                },
                "costs": costs.rounded(places).model_dump(by_alias=True, mode="json"),
                "payments": ledger.rounded(places).model_dump(by_alias=True, mode="json"),
                "additional_revenue": {
                    "markup": round(revenue.markup, places),
                    "transportation": round(revenue.transportation, places),
                    "total": round(revenue.total, places),
                },
            }
        )

    overall = compute_additional_revenue(projects, limits=limits, cache=cache, as_of=as_of)
    return {
        "meta": {
            "created_at": datetime.now().isoformat(timespec="seconds"),
            "project_count": len(entries),
        },
        "projects": entries,
        "additional_revenue": overall.rounded(places).model_dump(
            by_alias=True, mode="json", exclude={"errors"}
        ),
    }


# ---------- HISTORY (JSON) ----------

def save_report_json(report: dict[str, Any], history_dir: Path | None = None) -> Path:
    """
    Зберігає звіт як JSON в data/history/.
    Повертає шлях до створеного файлу.
    """
    history_dir = history_dir or HISTORY_DIR
    history_dir.mkdir(parents=True, exist_ok=True)

    # Безпечне ім'я файлу
    ts = report["meta"]["created_at"].replace(":", "").replace("-", "")
    names = [e["project"]["name"] for e in report.get("projects", [])]
    label = names[0] if len(names) == 1 else f"{len(names)}_projects"
    label = label.strip().lower().replace(" ", "_") or "report"

    path = history_dir / f"{ts}_{label}.json"
    path.write_text(json.dumps(report, ensure_ascii=False, indent=2), encoding="utf-8")
    return path


# ---------- ВИВІД ----------

def print_entry(entry: dict[str, Any]) -> None:
    costs = entry["costs"]
    payments = entry["payments"]
    revenue = entry["additional_revenue"]

    print(f"\n--- {entry['project']['name']} ---")
    for line in costs["materialBreakdown"]:
        print(
            f"  Material  {line['category']} / {line['workType']}: "
            f"{line['units']:,.2f} {line['unitLabel']} x {money(line['costPerUnit'])} = {money(line['total'])}"
        )
    for line in costs["laborBreakdown"]:
        print(
            f"  Labor     {line['category']} / {line['workType']}: "
            f"{line['units']:,.2f} {line['unitLabel']} x {money(line['costPerUnit'])} = {money(line['total'])}"
        )

    print(f"Materials:             {money(costs['materialCost'])}")
    print(f"Waste:                 {money(costs['waste'])}")
    print(f"Labor:                 {money(costs['laborCost'])}")
    if costs["laborDiscountAmount"]:
        print(f"  (discount:           -{money(costs['laborDiscountAmount'])})")
    print(f"Subtotal:              {money(costs['subtotal'])}")
    print(f"Tax:                   {money(costs['tax'])}")
    print(f"Markup:                {money(costs['markup'])}")
    print(f"Transportation:        {money(costs['transportation'])}")
    print(f"Misc fees:             {money(costs['miscFeesTotal'])}")
    print(f"TOTAL:                 {money(costs['totalProjectValue'])}")

    print(f"Deposit:               {money(payments['deposit'])}")
    print(f"Paid:                  {money(payments['totalPaid'])}")
    print(f"Remaining:             {money(payments['remainingBalance'])}")
    print(f"Fully paid:            {'yes' if payments['isFullyPaid'] else 'no'}")
    if payments["overdueTotal"]:
        print(f"Overdue:               {money(payments['overdueTotal'])}")
    print(f"Additional revenue:    {money(revenue['total'])}")

    notes = costs["errors"] + payments["errors"]
    if notes:
        print("\nNotes:")
        for n in notes:
            print(f" - [{n['severity']}] {n['message']}")


# ---------- ОСНОВНИЙ CLI СЦЕНАРІЙ ----------

def run_cli() -> None:
    print("\n=== Estimate Engine (CLI) ===\n")

    limits = load_limits()
    cache = TotalsCache()

    path = input("Project JSON file: ").strip()
    try:
        projects = load_projects(path)
    except (OSError, ValueError) as e:
        print(f"❌ {e}")
        return

    report = build_report(projects, limits=limits, cache=cache)
    for entry in report["projects"]:
        print_entry(entry)

    overall = report["additional_revenue"]
    print("\n=================")
    print(f"Projects:              {report['meta']['project_count']}")
    print(f"Fully paid:            {overall['projectCount']}")
    print(f"Additional revenue:    {money(overall['total'])}")
    print("-----------------\n")

    # --- Збереження в JSON history ---
    if ask_yes_no("Save report to history (JSON)?"):
        saved = save_report_json(report)
        print(f"✅ Saved JSON: {saved}\n")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    run_cli()
