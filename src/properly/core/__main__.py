"""CLI 入口模块 -- python -m properly.core <command>

支持的命令：
  list-orphans  列出无消息引用的附件记录及其文件 URL
"""

import asyncio
import sys

from .config import get_db_path


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("usage: python -m properly.core <command>")
        print("commands:")
        print("  list-orphans  list attachment records no message references")
        sys.exit(1)

    command = sys.argv[1]

    if command == "list-orphans":
        asyncio.run(list_orphans())
    else:
        print(f"unknown command: {command}")
        print("available commands: list-orphans")
        sys.exit(1)


async def list_orphans() -> None:
    """打印孤儿附件记录"""
    from .reconcile import find_orphaned_attachments
    from .store import create_store_group

    db_path = get_db_path()
    print(f"database: {db_path}")

    store_group = await create_store_group(db_path)

    try:
        report = await find_orphaned_attachments(store_group.conn)
        for record in report.attachments:
            print(f"{record.attachment_id}  {record.created_at.isoformat()}")
            for f in record.files:
                print(f"    {f.url}  ({f.type}, {f.name})")
        print(f"{len(report.attachments)} orphaned attachment record(s)")
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
