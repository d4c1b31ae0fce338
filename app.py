#!/usr/bin/env python
import aws_cdk as cdk
from hybrid_lambda.config.load import load_config
from hybrid_lambda.stacks.hybrid_stack import HybridLambdaStack

app = cdk.App()

cfg = load_config(app)

env = cdk.Environment(
    account=cfg.get("awsAccount"),
    region=cfg.get("awsRegion"),
)

stack = HybridLambdaStack(
    app,
    cfg["stackName"],
    cfg=cfg,
    env=env,
)

cdk.Tags.of(stack).add("Project", cfg.get("projectName", "hybrid-module-lambda"))
cdk.Tags.of(stack).add("Stage", cfg["stage"])

app.synth()
