"""
Seed script to populate a demo service catalog, jobs and users.

Run this script after database initialization to create:
- Services with their sub-services and sub-sub-services
- Job roles with baseline permissions
- Users holding those jobs, one of them super admin

Usage:
    uv run python -m scripts.seed_catalog
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.permissions.engine.nodes import to_kind_ref
from app.features.permissions.models import JobPermission
from app.features.services.models import Service, SubService, SubSubService
from app.features.users.models import Job, User
from app.utils import get_logger


log = get_logger(__name__)


# (label_ar, label_en, [(label_ar, label_en, [(label_ar, label_en), ...]), ...])
DEFAULT_CATALOG = [
    ("إدارة المرافق", "Facility management", [
        ("المواقع", "Sites", [("إضافة موقع", "Add site"), ("تعديل موقع", "Edit site")]),
        ("المباني", "Buildings", [("إضافة مبنى", "Add building"), ("حذف مبنى", "Delete building")]),
    ]),
    ("تقييم الحراس", "Guards rating", [
        ("تقييم جديد", "New evaluation", []),
        ("سجل التقييمات", "Evaluation records", [("تصدير PDF", "Export PDF"), ("تعديل تقييم", "Edit evaluation")]),
        ("التقارير", "Reports", [("تقرير شهري", "Monthly report")]),
    ]),
    ("المهام", "Tasks", [
        ("المهام المعلقة", "Pending tasks", [("اعتماد", "Approve"), ("رفض", "Reject")]),
    ]),
    ("الصلاحيات", "Permissions", [
        ("صلاحيات الوظائف", "Job permissions", []),
        ("استثناءات المستخدمين", "User exceptions", []),
    ]),
]

# job name -> labels (en) of granted services, sub-services and sub-sub-services
DEFAULT_JOBS = {
    ("مشرف", "Supervisor"): ["Guards rating", "New evaluation", "Evaluation records", "Export PDF", "Tasks"],
    ("مدير مرافق", "Facility manager"): ["Facility management", "Sites", "Add site", "Edit site", "Buildings"],
    ("موظف", "Employee"): [],
}

DEFAULT_USERS = [
    ("u-admin", "المدير العام", "Administrator", "admin@example.com", None, True),
    ("u-supervisor", "سالم", "Salem", "salem@example.com", "Supervisor", False),
    ("u-facility", "نورة", "Noura", "noura@example.com", "Facility manager", False),
    ("u-employee", "خالد", "Khaled", "khaled@example.com", "Employee", False),
]


async def seed_catalog(db: AsyncSession) -> dict[str, str]:
    """
    Create the default catalog.

    Returns:
        Dictionary mapping English labels to node ids
    """
    existing = (await db.execute(select(Service))).scalars().first()
    if existing:
        log.info("Catalog already seeded, skipping")
        return {}

    log.info("Creating default catalog...")
    node_ids = {}
    for s_ar, s_en, sub_services in DEFAULT_CATALOG:
        service = Service(label_ar=s_ar, label_en=s_en)
        db.add(service)
        await db.flush()
        node_ids[s_en] = f"s:{service.id}"
        for ss_ar, ss_en, actions in sub_services:
            sub_service = SubService(service_id=service.id, label_ar=ss_ar, label_en=ss_en)
            db.add(sub_service)
            await db.flush()
            node_ids[ss_en] = f"ss:{sub_service.id}"
            for sss_ar, sss_en in actions:
                action = SubSubService(sub_service_id=sub_service.id, label_ar=sss_ar, label_en=sss_en)
                db.add(action)
                await db.flush()
                node_ids[sss_en] = f"sss:{action.id}"

    await db.commit()
    log.info(f"Created {len(node_ids)} catalog nodes")
    return node_ids


async def seed_jobs_and_users(db: AsyncSession, node_ids: dict[str, str]) -> None:
    """Create default jobs with their baselines, and users holding them."""
    jobs = {}
    for (name_ar, name_en), granted in DEFAULT_JOBS.items():
        job = Job(name_ar=name_ar, name_en=name_en)
        db.add(job)
        await db.flush()
        jobs[name_en] = job
        for label in granted:
            if label not in node_ids:
                log.warning(f"Catalog node '{label}' not found for job '{name_en}'")
                continue
            db.add(JobPermission(job_id=job.id, actor_id="seed", **to_kind_ref(node_ids[label])))
        log.info(f"Created job '{name_en}' with {len(granted)} permissions")

    for user_id, name_ar, name_en, email, job_name, is_super_admin in DEFAULT_USERS:
        db.add(User(
            id=user_id,
            name_ar=name_ar,
            name_en=name_en,
            email=email,
            job_id=jobs[job_name].id if job_name else None,
            is_super_admin=is_super_admin,
        ))

    await db.commit()
    log.info("Default jobs and users created successfully")


async def main():
    """Main function to seed the catalog, jobs and users."""
    log.info("Starting catalog seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    # Get database session
    async for db in get_db():
        try:
            node_ids = await seed_catalog(db)
            if node_ids:
                await seed_jobs_and_users(db, node_ids)
            log.info("Catalog seeding completed successfully!")
        except Exception as e:
            log.error(f"Error seeding catalog: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
