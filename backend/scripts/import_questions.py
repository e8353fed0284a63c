"""CLI script to bulk-import questions from a CSV file into the backend DB.
Usage: python scripts/import_questions.py FILE --teacher-email EMAIL [--dry-run]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `quizboard` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from quizboard.database import engine, create_db_and_tables
from quizboard import repositories, services
from quizboard.errors import QuizboardError


def main(path: pathlib.Path, teacher_email: str, dry_run: bool = False) -> int:
    """Import `path` on behalf of the teacher registered as `teacher_email`.

    Results are printed to stdout for a quick CLI feedback loop. Returns
    a process exit code.
    """
    if not path.exists():
        print(f'File not found: {path}')
        return 1
    create_db_and_tables()
    with Session(engine) as session:
        teacher = repositories.UserRepository(session).get_by_email(teacher_email.strip().lower())
        if teacher is None:
            print(f'No user registered as {teacher_email}')
            return 1
        try:
            result = services.QuestionService(session).import_csv(teacher, path.read_bytes(), dry_run=dry_run)
        except QuizboardError as e:
            print(f'Import failed: {e.detail}')
            return 1
    for err in result['errors']:
        print(f"row {err['index']}: {err['error']}")
    count = result['valid'] if dry_run else result['created']
    verb = 'Would create' if dry_run else 'Created'
    print(f"{verb} {count} questions, {len(result['errors'])} rows rejected")
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('file', type=pathlib.Path, help='CSV file to import')
    parser.add_argument('--teacher-email', required=True, help='Owner of the imported questions')
    parser.add_argument('--dry-run', action='store_true', help='Validate only, write nothing')
    args = parser.parse_args()
    sys.exit(main(args.file, args.teacher_email, dry_run=args.dry_run))
