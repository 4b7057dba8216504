"""Deal intake -- CRM payload normalization, stage classification, and rep resolution.

Turns a raw CRM stage-change webhook into a canonical DealContext
(parse, enrich), decides whether the stage triggers enablement or outcome
tracking (stages), and resolves the rep's messaging identity (resolve).
"""
