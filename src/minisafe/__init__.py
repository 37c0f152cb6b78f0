"""Protocol engine for Safe multisig smart accounts."""
