"""Order processing demo for poisonpill."""
