"""
Talofix 物业报修平台后端

多租户入驻、邀请码、报修工作流与租户生命周期
"""

__version__ = "0.1.0"
