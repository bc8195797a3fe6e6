"""
Built-in sample diagnostic queries.

Used only when no pack can be loaded or a loaded pack yields no records, so
that a diagnostic run still collects the most basic instance information.
The set is small, fixed and works on every supported SQL Server version.
"""

from .models import QueryRecord

_WAIT_TYPES_TO_IGNORE = (
    "BROKER_EVENTHANDLER", "BROKER_RECEIVE_WAITFOR", "BROKER_TASK_STOP",
    "BROKER_TO_FLUSH", "BROKER_TRANSMITTER", "CHECKPOINT_QUEUE",
    "CHKPT", "CLR_AUTO_EVENT", "CLR_MANUAL_EVENT", "CLR_SEMAPHORE",
    "DBMIRROR_DBM_EVENT", "DBMIRROR_EVENTS_QUEUE", "DBMIRROR_WORKER_QUEUE",
    "DBMIRRORING_CMD", "DIRTY_PAGE_POLL", "DISPATCHER_QUEUE_SEMAPHORE",
    "EXECSYNC", "FSAGENT", "FT_IFTS_SCHEDULER_IDLE_WAIT", "FT_IFTSHC_MUTEX",
    "HADR_CLUSAPI_CALL", "HADR_FILESTREAM_IOMGR_IOCOMPLETION", "HADR_LOGCAPTURE_WAIT",
    "HADR_NOTIFICATION_DEQUEUE", "HADR_TIMER_TASK", "HADR_WORK_QUEUE",
    "KSOURCE_WAKEUP", "LAZYWRITER_SLEEP", "LOGMGR_QUEUE", "ONDEMAND_TASK_QUEUE",
    "PWAIT_ALL_COMPONENTS_INITIALIZED", "QDS_PERSIST_TASK_MAIN_LOOP_SLEEP",
    "QDS_CLEANUP_STALE_QUERIES_TASK_MAIN_LOOP_SLEEP", "REQUEST_FOR_DEADLOCK_SEARCH",
    "RESOURCE_QUEUE", "SERVER_IDLE_CHECK", "SLEEP_BPOOL_FLUSH", "SLEEP_DBSTARTUP",
    "SLEEP_DCOMSTARTUP", "SLEEP_MASTERDBREADY", "SLEEP_MASTERMDREADY",
    "SLEEP_MASTERUPGRADED", "SLEEP_MSDBSTARTUP", "SLEEP_SYSTEMTASK", "SLEEP_TASK",
    "SLEEP_TEMPDBSTARTUP", "SNI_HTTP_ACCEPT", "SP_SERVER_DIAGNOSTICS_SLEEP",
    "SQLTRACE_BUFFER_FLUSH", "SQLTRACE_INCREMENTAL_FLUSH_SLEEP", "SQLTRACE_WAIT_ENTRIES",
    "WAIT_FOR_RESULTS", "WAITFOR", "WAITFOR_TASKSHUTDOWN", "WAIT_XTP_HOST_WAIT",
    "WAIT_XTP_OFFLINE_CKPT_NEW_LOG", "WAIT_XTP_CKPT_CLOSE", "XE_DISPATCHER_JOIN",
    "XE_DISPATCHER_WAIT", "XE_TIMER_EVENT",
)

_IGNORED_WAITS_SQL = ",\n    ".join(f"'{wait}'" for wait in _WAIT_TYPES_TO_IGNORE)

# (id, name, section, description, query, estimated duration)
_SAMPLE_DEFINITIONS: tuple[tuple[str, str, str, str, str, int], ...] = (
    (
        "version-info",
        "SQL and OS Version Information",
        "Instance Information",
        "Get SQL Server and OS version information",
        "SELECT @@SERVERNAME AS [Server Name], @@VERSION AS [SQL Server and OS Version Info];",
        1000,
    ),
    (
        "server-properties",
        "Server Properties",
        "Instance Information",
        "Get selected server properties",
        """SELECT SERVERPROPERTY('MachineName') AS [MachineName],
SERVERPROPERTY('ServerName') AS [ServerName],
SERVERPROPERTY('InstanceName') AS [Instance],
SERVERPROPERTY('IsClustered') AS [IsClustered],
SERVERPROPERTY('Edition') AS [Edition],
SERVERPROPERTY('ProductLevel') AS [ProductLevel],
SERVERPROPERTY('ProductVersion') AS [ProductVersion],
SERVERPROPERTY('Collation') AS [Collation];""",
        1000,
    ),
    (
        "configuration-values",
        "Configuration Values",
        "Instance Information",
        "Get instance-level configuration values",
        """SELECT name, value, value_in_use, minimum, maximum, [description], is_dynamic, is_advanced
FROM sys.configurations WITH (NOLOCK)
ORDER BY name;""",
        2000,
    ),
    (
        "hardware-info",
        "Hardware Information",
        "Hardware & OS",
        "Get hardware information from SQL Server",
        """SELECT cpu_count AS [Logical CPU Count],
scheduler_count,
physical_memory_kb/1024 AS [Physical Memory (MB)],
max_workers_count AS [Max Workers Count],
affinity_type_desc AS [Affinity Type],
sqlserver_start_time AS [SQL Server Start Time],
DATEDIFF(hour, sqlserver_start_time, GETDATE()) AS [SQL Server Up Time (hrs)],
virtual_machine_type_desc AS [Virtual Machine Type]
FROM sys.dm_os_sys_info WITH (NOLOCK);""",
        1000,
    ),
    (
        "memory-usage",
        "Memory Usage",
        "Hardware & OS",
        "Get memory usage information",
        """SELECT total_physical_memory_kb/1024 AS [Physical Memory (MB)],
available_physical_memory_kb/1024 AS [Available Memory (MB)],
total_page_file_kb/1024 AS [Page File Commit Limit (MB)],
available_page_file_kb/1024 AS [Available Page File (MB)],
system_cache_kb/1024 AS [System Cache (MB)],
system_memory_state_desc AS [System Memory State]
FROM sys.dm_os_sys_memory WITH (NOLOCK);""",
        1000,
    ),
    (
        "database-files",
        "Database Files",
        "Database Objects",
        "File names and paths for all databases",
        """SELECT DB_NAME([database_id]) AS [Database Name],
[file_id], [name], physical_name, [type_desc], state_desc,
is_percent_growth, growth,
CONVERT(bigint, growth/128.0) AS [Growth in MB],
CONVERT(bigint, size/128.0) AS [Total Size in MB], max_size
FROM sys.master_files WITH (NOLOCK)
ORDER BY DB_NAME([database_id]), [file_id];""",
        2000,
    ),
    (
        "wait-stats",
        "Wait Statistics",
        "Performance",
        "Get wait statistics since last restart",
        f"""SELECT TOP(50) wait_type,
wait_time_ms,
signal_wait_time_ms,
wait_time_ms - signal_wait_time_ms AS resource_wait_time_ms,
waiting_tasks_count,
wait_time_ms / waiting_tasks_count AS avg_wait_time_ms
FROM sys.dm_os_wait_stats WITH (NOLOCK)
WHERE waiting_tasks_count > 0
AND wait_type NOT IN (
    {_IGNORED_WAITS_SQL}
)
ORDER BY wait_time_ms DESC;""",
        3000,
    ),
    (
        "backup-history",
        "Backup History",
        "Maintenance",
        "Last backup information by database",
        """SELECT ISNULL(d.[name], bs.[database_name]) AS [Database],
d.recovery_model_desc AS [Recovery Model],
d.log_reuse_wait_desc AS [Log Reuse Wait Desc],
MAX(CASE WHEN [type] = 'D' THEN bs.backup_finish_date ELSE NULL END) AS [Last Full Backup],
MAX(CASE WHEN [type] = 'I' THEN bs.backup_finish_date ELSE NULL END) AS [Last Differential Backup],
MAX(CASE WHEN [type] = 'L' THEN bs.backup_finish_date ELSE NULL END) AS [Last Log Backup]
FROM sys.databases AS d WITH (NOLOCK)
LEFT OUTER JOIN msdb.dbo.backupset AS bs WITH (NOLOCK)
ON bs.[database_name] = d.[name]
AND bs.backup_finish_date > GETDATE()- 30
WHERE d.name <> N'tempdb'
GROUP BY ISNULL(d.[name], bs.[database_name]), d.recovery_model_desc, d.log_reuse_wait_desc, d.[name]
ORDER BY d.recovery_model_desc, d.[name];""",
        2000,
    ),
)


def sample_queries() -> tuple[QueryRecord, ...]:
    """Return the built-in sample records, numbered 1..N."""
    return tuple(
        QueryRecord(
            sequence_number=number,
            id=query_id,
            name=name,
            description=description,
            section=section,
            query_text=query,
            estimated_duration_ms=duration,
        )
        for number, (query_id, name, section, description, query, duration) in enumerate(
            _SAMPLE_DEFINITIONS, start=1
        )
    )


SAMPLE_QUERIES: tuple[QueryRecord, ...] = sample_queries()
