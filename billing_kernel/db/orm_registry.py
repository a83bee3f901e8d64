"""Import every ORM module so ``Base.metadata`` knows all billing tables."""


def import_all_orm_models() -> None:
    import billing_batch.models.run  # noqa: F401
    import billing_kernel.services.sequence_service  # noqa: F401
    import billing_modules.billing.orm  # noqa: F401
    import billing_modules.leasing.orm  # noqa: F401
