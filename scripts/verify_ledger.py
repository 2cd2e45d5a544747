# flake8: noqa
# scripts/verify_ledger.py

import asyncio
from typing import Optional

import typer

from app.core.database import get_async_session_context
from app.domains.inv import crud as inv_crud
from app.domains.inv import services as inv_services

cli = typer.Typer()


async def verify_all(material_id: Optional[int]) -> int:
    """
    자재별 원장 체인을 점검하고, 불일치한 자재 수를 반환합니다.
    """
    async with get_async_session_context() as db:
        if material_id is not None:
            material_ids = [material_id]
        else:
            materials = await inv_crud.material.get_multi(db, limit=1_000_000)
            material_ids = [m.id for m in materials]

        inconsistent = 0
        for current_id in material_ids:
            report = await inv_services.verify_ledger_chain(db, material_id=current_id)
            mark = "OK " if report.consistent else "ERR"
            print(
                f"[{mark}] material={report.material_id} entries={report.entry_count} "
                f"replayed={report.replayed_quantity} stored={report.stored_quantity}"
            )
            if not report.consistent:
                inconsistent += 1
                if report.broken_entry_ids:
                    print(f"      broken entries: {report.broken_entry_ids}")
        return inconsistent


@cli.command()
def main(
    material_id: Optional[int] = typer.Option(
        None, '--material-id', '-m',
        help="점검할 자재 ID. 생략하면 모든 자재를 점검합니다."
    ),
):
    """
    원장(ledger_entries)을 0 부터 재생하여 자재의 현재 재고 수량과 일치하는지 점검합니다.
    """
    inconsistent = asyncio.run(verify_all(material_id))
    if inconsistent:
        print(f"{inconsistent}개 자재의 원장이 재고 수량과 일치하지 않습니다.")
        raise typer.Exit(code=1)
    print("모든 자재의 원장이 재고 수량과 일치합니다.")


if __name__ == "__main__":
    cli()
