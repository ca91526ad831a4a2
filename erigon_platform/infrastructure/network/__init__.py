from .vpc_stack import VpcStack
