"""devshell 配置

配置分为以下几类：
- 注册名配置：front-end / agent 的全局注册名
- 接管配置：front-end 注册等待、日志 handler 清理
- 脚本配置：脚本禁用哨兵值
- 项目配置：项目配置文件名及作用域
- 分布式配置：节点名、peer-discovery 守护进程地址
- 日志配置
"""

import os

# === 注册名配置 ===
FRONTEND_NAME = "frontend"  # 当前 front-end/output sink 的注册名
AGENT_NAME = "devshell_agent"  # 交互命令循环的注册名（全局唯一）

# === 角色配置 ===
FRONTEND_ROLE = "frontend"
COMPONENT_MASTER_ROLE = "component_master"  # 组件 master（代持 output 绑定）
COMPONENT_UNIT_ROLE = "component_unit"
AGENT_ROLE = "agent"

# === 接管配置 ===
FRONTEND_POLL_INTERVAL = 0.1  # 等待新 front-end 注册的轮询间隔（秒）
FRONTEND_REGISTER_TIMEOUT = 3.0  # 等待新 front-end 注册的最长时间（秒）
LOG_HANDLER_REMOVE_ATTEMPTS = 3  # 重复 fallback 日志 handler 的最多移除次数

# === 脚本配置 ===
SCRIPT_DISABLED = "none"  # --script none 显式禁用
SCRIPT_ENTRYPOINT = "main"
SCRIPT_BUNDLE_MAIN = "__main__.py"  # zipapp 内的入口文件

# === 项目配置 ===
PROJECT_CONFIG_FILE = "devshell.yaml"
SHELL_SCOPE = "shell"  # 项目配置中 shell 相关选项所在的 key
DEFAULT_BASE_DIR = "_build"

# === 组件配置 ===
COMPONENT_ATTRIBUTE = "__component__"  # 组件模块声明元数据的属性名
APPS_DELIMITERS = " ,:"  # --apps 支持的分隔符

# === 分布式配置 ===
NO_NODE = "nonode@nohost"
DISCOVERY_HOST = os.environ.get("DEVSHELL_DISCOVERY_HOST", "127.0.0.1")
DISCOVERY_PORT = int(os.environ.get("DEVSHELL_DISCOVERY_PORT", "4369"))
DISCOVERY_CONNECT_TIMEOUT = 1.0  # 秒

# === 日志配置 ===
LOG_LEVEL = os.environ.get("DEVSHELL_LOG_LEVEL", "INFO")  # 日志级别

# === 指标配置 ===
METRICS_ENABLED = True  # 是否启用指标收集
