import logging

from age_policy.policy import AgePolicy, PolicyStore, build_default_policy
from schemas import AgePolicySchema

from .models import AgePolicyDoc


def policy_to_doc(policy: AgePolicy, published_by: str | None = None, notes: str | None = None) -> AgePolicyDoc:
    return AgePolicyDoc(
        version=policy.version,
        effective_from=policy.effective_from,
        policy_json=AgePolicySchema.from_domain(policy).model_dump(mode="json"),
        published_by=published_by,
        notes=notes,
    )


def doc_to_policy(doc: AgePolicyDoc) -> AgePolicy:
    return AgePolicySchema(**doc.policy_json).to_domain()


async def load_policies() -> list[AgePolicy]:
    docs = await AgePolicyDoc.find({}).sort([("version", 1)]).to_list()
    return [doc_to_policy(doc) for doc in docs]


async def save_policy(policy: AgePolicy, published_by: str | None = None, notes: str | None = None) -> AgePolicyDoc:
    doc = policy_to_doc(policy, published_by=published_by, notes=notes)
    await doc.insert()
    return doc


async def load_policy_store(store: PolicyStore) -> PolicyStore:
    """
    Publish persisted policies into ``store``, seeding the default policy
    when the collection is empty. Versions the store already holds are skipped.
    """
    policies = await load_policies()
    if not policies:
        default = build_default_policy()
        await save_policy(default, published_by="system", notes="Seeded default policy")
        logging.info(f"Seeded default age policy version {default.version}")
        policies = [default]

    latest = store.latest()
    for policy in policies:
        if latest is not None and policy.version <= latest.version:
            continue
        store.publish(policy)

    logging.info(f"Loaded {len(policies)} age policy versions")
    return store
